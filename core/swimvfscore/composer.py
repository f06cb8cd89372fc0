import concurrent.futures
import logging
from timeit import default_timer as timer
from typing import Callable, Optional

from swimvfscore.mountsource import MountSource
from swimvfscore.mountsource.compositing.subpath import SubPathMountSource
from swimvfscore.mountsource.compositing.union import UnionMountSource
from swimvfscore.mountsource.factory import open_mount_source
from swimvfscore.overlay import Overlay
from swimvfscore.placeholders import replace_placeholders
from swimvfscore.utils import OverlayError

logger = logging.getLogger(__name__)


def _close_quietly(mountSource: MountSource) -> None:
    try:
        mountSource.__exit__(None, None, None)
    except Exception as exception:
        logger.warning(
            "Failed to close partially composed layer because of: %s",
            exception,
            exc_info=logger.isEnabledFor(logging.DEBUG),
        )


class OverlayComposer:
    """
    Turns an Overlay tree into one read-only MountSource.

    Each overlay is opened with the backend matching its source URI scheme, re-rooted to its workdir,
    and then the nested overlays are composed recursively and layered on top of it in declaration order.
    """

    def __init__(
        self,
        replacer: Optional[Callable[[str], str]] = None,
        openMountSource: Callable[..., MountSource] = open_mount_source,
        parallelization: int = 1,
        **options,
    ) -> None:
        """
        replacer        : Expands placeholders in all string fields before composition. Defaults to
                          swimvfscore.placeholders.replace_placeholders. Specify 'lambda x: x' to disable.
        openMountSource : Opens the source of a single overlay. Can be replaced for testing.
        parallelization : If larger than 1, the nested overlays of each overlay are opened concurrently
                          with this many threads. The layering order does not depend on the completion order.
        options         : Forwarded to the backends, e.g., timeout=10.
        """
        self.replacer = replacer if replacer is not None else replace_placeholders
        self.openMountSource = openMountSource
        self.parallelization = parallelization
        self.options = options

    def compose(self, overlay: Overlay) -> MountSource:
        overlay = overlay.resolve_placeholders(self.replacer)
        # Reject configuration errors in any layer before fetching anything.
        overlay.validate()

        t0 = timer()
        result = self._compose(overlay)
        logger.info("Composed %d overlays in %.3fs", sum(1 for _ in overlay.walk()), timer() - t0)
        return result

    def _open_layer(self, overlay: Overlay) -> MountSource:
        """Opens the source of one overlay and re-roots it. Does not handle children."""
        try:
            mountSource = self.openMountSource(overlay, **self.options)
        except OverlayError:
            raise
        except Exception as exception:
            raise OverlayError(overlay, exception) from exception

        if not overlay.workdir or overlay.workdir.strip('/') == '':
            return mountSource

        try:
            return SubPathMountSource(overlay.workdir, mountSource)
        except Exception as exception:
            _close_quietly(mountSource)
            raise OverlayError(overlay, exception) from exception

    def _compose(self, overlay: Overlay) -> MountSource:
        base = self._open_layer(overlay)
        if not overlay.children:
            return base

        try:
            layers = self._compose_children(overlay.children)
        except BaseException:
            _close_quietly(base)
            raise

        logger.debug("Layering %d overlays on top of %s", len(layers), overlay)
        return UnionMountSource([base, *layers])

    def _compose_children(self, children) -> list[MountSource]:
        if self.parallelization <= 1 or len(children) <= 1:
            layers: list[MountSource] = []
            try:
                for child in children:
                    layers.append(self._compose(child))
            except BaseException:
                for layer in layers:
                    _close_quietly(layer)
                raise
            return layers

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.parallelization) as executor:
            futures = [executor.submit(self._compose, child) for child in children]
            concurrent.futures.wait(futures)

        failed = [future for future in futures if future.exception() is not None]
        if failed:
            for future in futures:
                if future.exception() is None:
                    _close_quietly(future.result())
            # Raise the error of the first failing child in declaration order for deterministic behavior.
            raise failed[0].exception()  # type: ignore

        return [future.result() for future in futures]
