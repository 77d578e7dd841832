"""The ``create-release`` run.

One run:

1. reads the published versions of the package and of the base package
2. computes the base versions not released yet (oldest first)
3. runs the selected pre-flight cleanups
4. releases each pending version in turn: stage, commit, release, pack, push
5. removes the staging root unless configured to keep it

Any failure ends the whole run; nothing already created is rolled back.
An existing tag also ends the run, but is reported as an informational stop.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from tu.core.config import Config
from tu.core.result import Err, Ok, Result
from tu.output.console import ConsoleProtocol
from tu.services.release import refs
from tu.services.release.cleanup import run_cleanup, select_cleanup_steps
from tu.services.release.errors import ReleaseError
from tu.services.release.gateways import PackageRegistry, PackagingTool, SourceControl, Stager
from tu.services.release.model import ReleaseWorkItem, RunOptions, RunSummary, WorkItemStage
from tu.services.release.notes import render_commit_message, render_release_notes
from tu.services.release.reconcile import compute_work_list, latest_version
from tu.services.release.semver import SemanticVersion

# Short commit id passed to the packaging tool when nothing was committed.
PLACEHOLDER_COMMIT_ID = "0000000"


class ReleasePipeline:
    def __init__(
        self,
        config: Config,
        console: ConsoleProtocol,
        *,
        registry: PackageRegistry,
        github: SourceControl,
        nuget: PackagingTool,
        staging: Stager,
        clock: Callable[[], float] = time.time,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._config = config
        self._console = console
        self._registry = registry
        self._github = github
        self._nuget = nuget
        self._staging = staging
        self._clock = clock
        self._timer = timer

    def resolve_target_version(self, upstream: SemanticVersion) -> SemanticVersion:
        """Version of the derived package released for ``upstream``.

        With a prerelease identifier ``beta``, ``4.5.0`` becomes
        ``4.5.0-beta.<unix seconds>``.
        """
        identifier = self._config.package.prerelease_identifier
        if not identifier:
            return upstream
        return upstream.with_release_label(f"{identifier}.{int(self._clock())}")

    def _report(self, error: ReleaseError) -> None:
        if error.is_informational or error.kind == "invalid_options":
            self._console.warning(error.message)
        else:
            self._console.error(error.message)
        if error.hint:
            self._console.print(error.hint)

    def _check_options(self, options: RunOptions) -> ReleaseError | None:
        invalid = options.validate()
        if invalid is not None:
            return invalid
        if (options.push or options.clean_registry) and not self._config.nuget.api_key:
            return ReleaseError(
                kind="invalid_input",
                message="a NuGet API key is required to push or delete packages",
                hint="Set nuget.api_key or NUGET_API_KEY.",
            )
        return None

    async def run(self, options: RunOptions) -> RunSummary:
        summary = RunSummary()

        invalid = self._check_options(options)
        if invalid is not None:
            self._report(invalid)
            summary.error = invalid
            return summary

        package = self._config.package
        base = self._config.base_package
        self._console.info(
            f"Package: {package.id} ({package.slug}), base package: {base.id} ({base.slug})"
        )

        targets = await self._registry.list_versions(package.id)
        if isinstance(targets, Err):
            return self._fail(summary, targets.error)

        latest = latest_version(targets.value)
        summary.latest_version = latest
        self._console.info(f"Latest version of the package is {latest.normalized}.")

        upstream = await self._registry.list_versions(base.id)
        if isinstance(upstream, Err):
            return self._fail(summary, upstream.error)

        higher = compute_work_list(targets.value, upstream.value)
        if not higher:
            self._console.info("No higher version found in the base package.")
            return summary
        self._console.info(f"Found {len(higher)} higher version(s) of the base package.")

        limit = self._config.general.version_creation_limit
        pending = compute_work_list(targets.value, upstream.value, limit)
        if len(pending) < len(higher):
            self._console.info(f"Limiting version creation to {len(pending)} version(s).")
        summary.pending = tuple(pending)

        steps = select_cleanup_steps(
            options,
            staging=self._staging,
            github=self._github,
            nuget=self._nuget,
            console=self._console,
        )
        if steps and not await run_cleanup(steps, latest):
            return self._fail(
                summary,
                ReleaseError(
                    kind="cleanup_failed",
                    message="Some cleanup operation failed. Aborting package creation.",
                ),
            )

        for version in pending:
            item = ReleaseWorkItem(upstream_version=version)
            result = await self._release(item, options)
            if isinstance(result, Err):
                return self._fail(summary, result.error)
            summary.completed.append(item)

        if self._config.staging.keep_folder:
            self._console.debug("staging folder deletion skipped")
        else:
            removed = self._staging.delete_staging_root()
            if isinstance(removed, Err):
                return self._fail(summary, removed.error)

        return summary

    def _fail(self, summary: RunSummary, error: ReleaseError) -> RunSummary:
        self._report(error)
        summary.error = error
        return summary

    async def _release(
        self, item: ReleaseWorkItem, options: RunOptions
    ) -> Result[ReleaseWorkItem, ReleaseError]:
        package = self._config.package
        base = self._config.base_package
        upstream = item.upstream_version
        started = self._timer()

        self._console.header(f"{base.id} {upstream.normalized}")

        target = self.resolve_target_version(upstream)
        item.target_version = target
        item.stage = WorkItemStage.VERSION_RESOLVED
        self._console.debug(f"package version resolved to {target.normalized}")

        existing = await self._github.find_package_tag(target)
        if isinstance(existing, Err):
            return existing
        if existing.value is not None:
            return Err(
                ReleaseError(
                    kind="tag_exists",
                    message=f"Tag {existing.value} already exists in the repository. "
                    "Aborting further operations.",
                )
            )
        item.stage = WorkItemStage.DUPLICATE_CHECKED

        spec = await self._registry.get_package_spec_data(base.id, upstream)
        if isinstance(spec, Err):
            return spec
        item.target_frameworks = spec.value.target_frameworks
        item.content_reference = spec.value.commit_id or refs.tag_ref(upstream)
        item.stage = WorkItemStage.METADATA_FETCHED
        self._console.debug(
            "target frameworks: "
            + (", ".join(str(t) for t in item.target_frameworks) or "(none)")
        )

        staged = await self._staging.assemble(
            target, upstream, item.target_frameworks, item.content_reference
        )
        if isinstance(staged, Err):
            return staged
        item.staging_path = staged.value
        item.stage = WorkItemStage.STAGING_ASSEMBLED
        self._console.debug(f"package files assembled in {staged.value}")

        if options.commit:
            committed = await self._commit_and_release(item, options)
            if isinstance(committed, Err):
                return committed
        else:
            self._console.debug("commit skipped")

        if options.build_artifact:
            packed = await self._nuget.create_package(
                staged.value, target, item.short_commit_id or PLACEHOLDER_COMMIT_ID
            )
            if isinstance(packed, Err):
                return packed
            item.artifact_path = packed.value
            item.stage = WorkItemStage.PACKED
            self._console.info(f"Package file created: {packed.value}")

            if options.push:
                pushed = await self._nuget.upload_package(packed.value)
                if isinstance(pushed, Err):
                    return pushed
                item.stage = WorkItemStage.PUBLISHED
                self._console.info("Package file uploaded.")

        item.stage = WorkItemStage.COMPLETED
        item.elapsed_ms = int((self._timer() - started) * 1000)
        self._console.success(
            f"Package {package.id} version {target.normalized} has been completed "
            f"in {item.elapsed_ms} ms."
        )
        return Ok(item)

    async def _commit_and_release(
        self, item: ReleaseWorkItem, options: RunOptions
    ) -> Result[None, ReleaseError]:
        assert item.target_version is not None
        assert item.staging_path is not None
        assert item.content_reference is not None

        ensured = await self._github.ensure_branch_exists()
        if isinstance(ensured, Err):
            return ensured

        message = render_commit_message(
            github=self._config.github,
            package=self._config.package,
            base_package=self._config.base_package,
            version=item.target_version,
            base_version=item.upstream_version,
        )
        self._console.debug(f"commit message: {message}")

        commit = await self._github.create_commit(item.staging_path, message)
        if isinstance(commit, Err):
            return commit
        item.commit_id = commit.value
        item.stage = WorkItemStage.COMMITTED
        self._console.info(
            f"Files committed to branch {self._config.package.repository_branch_name} "
            f"as {item.short_commit_id}."
        )

        if not options.release:
            self._console.debug("release skipped")
            return Ok(None)

        url = await self._github.resolve_base_release_url(item.content_reference)
        if isinstance(url, Err):
            return url

        notes = render_release_notes(
            github=self._config.github,
            package=self._config.package,
            base_package=self._config.base_package,
            version=item.target_version,
            base_version=item.upstream_version,
            commit_message=message,
            base_release_url=url.value,
        )
        released = await self._github.create_release(item.target_version, notes)
        if isinstance(released, Err):
            return released
        item.stage = WorkItemStage.RELEASED
        self._console.info(f"Release {item.target_version.normalized} created.")
        return Ok(None)
