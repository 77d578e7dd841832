# SPDX-License-Identifier: MIT
"""Application services for the theming updater.

Services implement the release workflow, coordinating between the domain
layer (core/) and infrastructure (platform/).
"""
