"""Standard library loader.

Orchestrates loading of builtin and third-party packages: version
resolution, cache lookup, download, extraction and write-back. Independent
packages are resolved concurrently; a failure in one package never aborts
the whole load.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable
from collections.abc import Coroutine
from collections.abc import Iterable
from typing import Any

from ..archive import AUXILIARY_EXTENSIONS
from ..archive import auxiliary_name_from_path
from ..archive import extract_package_tarball
from ..archive import module_name_from_path
from ..config import LoaderConfig
from ..config import PackageSpec
from ..exceptions import ArchiveError
from ..exceptions import PreludeLoadError
from ..exceptions import RegistryError
from ..models import AuxiliaryFile
from ..models import LoadedModule
from ..models import LoadResult
from ..models import PackageIdentity
from ..package_cache import PackageCache
from ..registry.client import RegistryClient
from ..registry.versions import version_key
from .builtin_packages import BUILTIN_PACKAGE_MODULES
from .builtin_packages import FALLBACK_SOURCE_URLS
from .builtin_packages import PRELUDE_FILENAME

logger = logging.getLogger(__name__)

ModuleSink = Callable[[str, str], None]

# Failures that are local to one package and recorded rather than raised
PACKAGE_ERRORS = (RegistryError, ArchiveError, OSError)

_PACKAGE_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")
_VERSION_RE = re.compile(r"^[0-9A-Za-z][0-9A-Za-z.+_-]*$")

FALLBACK_IO_MODULE = "gleam/io"
FALLBACK_IO_SOURCE = """
// Fallback gleam/io module implementation

@external(javascript, "console", "log")
pub fn print(value: a) -> Nil

pub fn println(value: a) -> Nil {
  print(value)
}

@external(javascript, "console", "debug")
pub fn debug(value: a) -> a
"""


class PackageLoader:
    """Loads builtin and user-requested packages into one module set.

    The set of already-loaded package names lives for the lifetime of the
    loader (or until ``reset``) and prevents resolving a package twice when
    it is both builtin and user-requested.
    """

    def __init__(
        self,
        config: LoaderConfig | None = None,
        *,
        client: RegistryClient | None = None,
        cache: PackageCache | None = None,
    ):
        self.config = config or LoaderConfig()
        self.client = client or RegistryClient(self.config.registry)
        self.cache = cache or PackageCache(self.config.cache)
        self._loaded_packages: set[str] = set()
        # module name -> package that last provided it
        self._module_owners: dict[str, str] = {}

    @property
    def loaded_packages(self) -> frozenset[str]:
        return frozenset(self._loaded_packages)

    def reset(self) -> None:
        """Forget which packages have been loaded."""
        self._loaded_packages.clear()
        self._module_owners.clear()

    async def load_all(self, config: LoaderConfig | None = None, sink: ModuleSink | None = None) -> LoadResult:
        """Load the prelude, all builtin packages and all user packages.

        Args:
            config: Overrides the loader's config for the package lists and
                load options. Cache and registry settings stay as constructed.
            sink: Called as ``sink(module_name, source)`` for every primary module

        Returns:
            Combined LoadResult; partial failures are listed in ``errors``
        """
        config = config or self.config
        result = LoadResult()

        try:
            result.auxiliary_files.append(await self.load_prelude(config.prelude_url))
            logger.debug("Loaded runtime prelude")
        except PreludeLoadError as e:
            result.errors.append(f"Failed to load prelude: {e}")
            logger.warning(f"Failed to load prelude: {e}")

        pending = set(config.builtin_packages) | {spec.name for spec in config.packages}
        try:
            async with asyncio.timeout(config.load_timeout):
                await self.load_builtin_packages(
                    sink, config.builtin_packages, into=result, pending=pending, limit=config.max_concurrency
                )
                await self.load_third_party_packages(
                    config.packages, sink, into=result, pending=pending, limit=config.max_concurrency
                )
        except TimeoutError:
            logger.error(f"Package loading exceeded the {config.load_timeout:g}s deadline")
            for name in sorted(pending):
                result.errors.append(f"Timed out loading package {name}")

        if config.fallback_io and FALLBACK_IO_MODULE not in result.module_names():
            result.modules.append(self.add_fallback_io(sink))

        return result

    async def load_prelude(self, url: str | None = None) -> AuxiliaryFile:
        """Fetch the runtime prelude.

        Raises:
            PreludeLoadError: Prelude could not be fetched
        """
        try:
            content = await self.client.fetch_text(url or self.config.prelude_url)
        except RegistryError as e:
            raise PreludeLoadError(str(e)) from e
        return AuxiliaryFile(path=PRELUDE_FILENAME, content=content)

    async def load_builtin_packages(
        self,
        sink: ModuleSink | None = None,
        package_names: Iterable[str] | None = None,
        *,
        into: LoadResult | None = None,
        pending: set[str] | None = None,
        limit: int | None = None,
    ) -> LoadResult:
        """Load builtin packages, falling back to raw source fetches on failure.

        Args:
            sink: Module write-through callback
            package_names: Builtins to load. Defaults to the configured list.
            into: Result to accumulate into as each package completes
            pending: Names still outstanding; completed packages are removed
            limit: Maximum packages resolved at once

        Returns:
            The accumulated LoadResult
        """
        names = package_names if package_names is not None else self.config.builtin_packages
        result = into if into is not None else LoadResult()

        async def load_one(name: str) -> LoadResult:
            try:
                package_result = await self.load_package(name, None, sink)
            except PACKAGE_ERRORS as e:
                logger.error(f"Failed to load builtin package {name}: {e}")
                package_result = await self.load_package_from_fallback(name, sink)
                package_result.errors.insert(0, f"Failed to load builtin package {name}: {e}")
            if pending is not None:
                pending.discard(name)
            return package_result

        await self._gather((load_one(name) for name in dict.fromkeys(names)), result, limit)
        return result

    async def load_third_party_packages(
        self,
        packages: Iterable[str | PackageSpec],
        sink: ModuleSink | None = None,
        *,
        into: LoadResult | None = None,
        pending: set[str] | None = None,
        limit: int | None = None,
    ) -> LoadResult:
        """Load user-specified packages. Already-loaded names are skipped.

        There is no fallback for third-party packages; failures are recorded
        in ``errors`` and the package is absent from the result.
        """
        result = into if into is not None else LoadResult()

        specs: dict[str, PackageSpec] = {}
        for entry in packages:
            spec = PackageSpec.parse(entry)
            if spec.name in self._loaded_packages:
                logger.debug(f"Skipping {spec.name} (already loaded)")
                if pending is not None:
                    pending.discard(spec.name)
                continue
            specs.setdefault(spec.name, spec)

        async def load_one(spec: PackageSpec) -> LoadResult:
            try:
                package_result = await self.load_package(spec.name, spec.version, sink)
            except PACKAGE_ERRORS as e:
                logger.error(f"Failed to load package {spec.name}: {e}")
                package_result = LoadResult(errors=[f"Failed to load package {spec.name}: {e}"])
            if pending is not None:
                pending.discard(spec.name)
            return package_result

        await self._gather((load_one(spec) for spec in specs.values()), result, limit)
        return result

    async def _gather(
        self, tasks: Iterable[Coroutine[Any, Any, LoadResult]], into: LoadResult, limit: int | None
    ) -> None:
        """Run package loads concurrently, extending ``into`` as each completes.

        If one load raises (e.g. the sink fails), the remaining loads are
        cancelled and awaited before the exception propagates unchanged.
        """
        semaphore = asyncio.Semaphore(limit or self.config.max_concurrency)

        async def bounded(task: Coroutine[Any, Any, LoadResult]) -> None:
            async with semaphore:
                into.extend(await task)

        try:
            async with asyncio.TaskGroup() as group:
                for task in tasks:
                    group.create_task(bounded(task))
        except BaseExceptionGroup as errors:
            raise errors.exceptions[0] from None

    async def _resolve_version(self, package_name: str) -> str:
        """Resolve the latest stable version, or the newest cached one when offline."""
        try:
            return await self.client.get_latest_version(package_name)
        except RegistryError as e:
            cached_version = await asyncio.to_thread(self._newest_cached_version, package_name)
            if cached_version is None:
                raise
            logger.warning(f"Registry unavailable for {package_name} ({e}); using cached {cached_version}")
            return cached_version

    def _newest_cached_version(self, package_name: str) -> str | None:
        versions = [
            entry.version
            for entry in self.cache.list()
            if entry.package_name == package_name and self.cache.has(entry.package_name, entry.version)
        ]
        return max(versions, key=version_key) if versions else None

    async def load_package(
        self, package_name: str, version: str | None = None, sink: ModuleSink | None = None
    ) -> LoadResult:
        """Load a single package from the cache or the registry.

        Raises:
            RegistryError: Invalid identity, version resolution or download failed
            ArchiveError: Tarball could not be extracted
        """
        if not _PACKAGE_NAME_RE.match(package_name):
            raise RegistryError(f"Invalid package name: {package_name!r}")
        if version is not None and not _VERSION_RE.match(version):
            raise RegistryError(f"Invalid version for {package_name}: {version!r}")
        if version == "latest":
            version = None

        identity = PackageIdentity(package_name, version or await self._resolve_version(package_name))
        target_version = identity.version
        logger.debug(f"Loading package {identity}")

        result = LoadResult()
        cached = await asyncio.to_thread(self.cache.get, package_name, target_version)
        if cached is not None:
            logger.debug(f"Using cached version of {identity}")
            for key, content in cached.items():
                if key.endswith(AUXILIARY_EXTENSIONS):
                    result.auxiliary_files.append(AuxiliaryFile(path=key, content=content))
                else:
                    result.modules.append(LoadedModule(key, content, package_name))
        else:
            logger.info(f"Downloading {identity}")
            tarball = await self.client.download_tarball(package_name, target_version)
            extracted = extract_package_tarball(tarball)

            try:
                await asyncio.to_thread(self.cache.set, package_name, target_version, extracted.files)
            except (OSError, ValueError) as e:
                logger.warning(f"Could not cache {identity}: {e}")

            for file in extracted.files:
                if file.is_auxiliary:
                    result.auxiliary_files.append(AuxiliaryFile(auxiliary_name_from_path(file.path), file.content))
                else:
                    result.modules.append(LoadedModule(module_name_from_path(file.path), file.content, package_name))

        self._emit(result, sink)
        self._loaded_packages.add(package_name)
        logger.debug(
            f"Loaded {len(result.modules)} modules and {len(result.auxiliary_files)} auxiliary files "
            f"from {identity}"
        )
        return result

    async def load_package_from_fallback(self, package_name: str, sink: ModuleSink | None = None) -> LoadResult:
        """Fetch the known modules of a builtin package from its raw source location.

        Individual module failures are logged and skipped.
        """
        result = LoadResult()
        base_url = FALLBACK_SOURCE_URLS.get(package_name)
        module_paths = BUILTIN_PACKAGE_MODULES.get(package_name)
        if not base_url or not module_paths:
            return result

        async def fetch_module(module_path: str) -> LoadedModule | None:
            try:
                code = await self.client.fetch_text(f"{base_url}/{module_path}", retry=False)
            except RegistryError as e:
                logger.debug(f"Fallback fetch of {package_name}/{module_path} failed: {e}")
                return None
            return LoadedModule(module_path.removesuffix(".gleam"), code, package_name)

        for module in await asyncio.gather(*(fetch_module(path) for path in module_paths)):
            if module is not None:
                result.modules.append(module)

        self._emit(result, sink)
        self._loaded_packages.add(package_name)
        logger.info(f"Loaded {len(result.modules)}/{len(module_paths)} modules of {package_name} via fallback")
        return result

    def add_fallback_io(self, sink: ModuleSink | None = None) -> LoadedModule:
        """Provide a minimal gleam/io implementation when the real one is unavailable."""
        module = LoadedModule(FALLBACK_IO_MODULE, FALLBACK_IO_SOURCE, "gleam_stdlib")
        self._emit(LoadResult(modules=[module]), sink)
        logger.info("Using fallback gleam/io implementation")
        return module

    def _emit(self, result: LoadResult, sink: ModuleSink | None) -> None:
        for module in result.modules:
            owner = self._module_owners.get(module.module_name)
            if owner is not None and owner != module.package_name:
                logger.warning(
                    f"Module {module.module_name} from {module.package_name} overrides the one from {owner}"
                )
            self._module_owners[module.module_name] = module.package_name
            if sink is not None:
                sink(module.module_name, module.source)


def create_package_loader(config: LoaderConfig | None = None) -> PackageLoader:
    """Create a loader with a registry client and cache built from config."""
    return PackageLoader(config)
