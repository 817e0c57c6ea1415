"""Stage 2: Image optimization — fetch, resize and recompress every photo once.

Each (uri, preset) request is handled independently on a thread pool:

    fetch bytes → decode (Pillow) → EXIF-correct → downscale → JPEG encode

A request never raises into the batch. Whatever goes wrong (network, not an
image, encoder error, timeout) becomes an ``ImageFailure`` in that request's
slot, and the layout stage draws a placeholder for it. Results are joined by
request key before layout starts, so completion order does not matter.
"""
import io
import logging
import threading
import time
from collections.abc import Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from PIL import Image, ImageOps

from models.images import (
    PRESETS,
    ImageFailure,
    ImagePreset,
    ImageRequest,
    OptimizedImage,
    OptimizeResult,
)
from utils.fetchers import Fetcher

logger = logging.getLogger(__name__)

# Reference source size for the size estimate (HD camera frame)
_HD_PIXELS = 1920 * 1080
_BASE64_OVERHEAD = 1.33

# Polling interval for the join loop; lets a cancel request interrupt the wait
_JOIN_POLL_S = 0.2

# Extra wall-clock allowance for the whole batch on top of the per-item budget
_BATCH_SLACK_S = 5.0


class CompileCancelled(Exception):
    """The caller abandoned the compile while images were still being processed."""


def optimize(source_bytes: bytes, preset: ImagePreset | str, uri: str = "") -> OptimizeResult:
    """Resize and recompress ``source_bytes`` under ``preset``. Never raises."""
    if isinstance(preset, str):
        preset = PRESETS[preset]

    try:
        with Image.open(io.BytesIO(source_bytes)) as img:
            img.load()
            corrected = ImageOps.exif_transpose(img)
            corrected = corrected.copy()  # detach from the source buffer
    except Exception as exc:  # Pillow raises several unrelated types for corrupt files
        return ImageFailure(preset=preset.name, uri=uri, reason="decode", message=str(exc))

    try:
        resized = _resize(corrected, preset)
        rgb = _to_rgb(resized)
        buf = io.BytesIO()
        rgb.save(buf, format="JPEG", quality=preset.jpeg_quality, optimize=True)
    except Exception as exc:
        return ImageFailure(preset=preset.name, uri=uri, reason="encode", message=str(exc))

    return OptimizedImage(
        preset=preset.name,
        data=buf.getvalue(),
        width=rgb.width,
        height=rgb.height,
    )


def scaled_size(width: int, height: int, preset: ImagePreset) -> tuple[int, int]:
    """Target size preserving aspect ratio; never upscales, never below 1 px."""
    scale = min(preset.max_width / width, preset.max_height / height, 1.0)
    return max(1, round(width * scale)), max(1, round(height * scale))


def fetch_and_optimize(
    request: ImageRequest,
    fetch: Fetcher,
    timeout_s: float,
) -> OptimizeResult:
    """Fetch one photo and optimize it. Never raises."""
    started = time.monotonic()
    try:
        source = fetch(request.uri, timeout_s)
    except Exception as exc:
        return ImageFailure(
            preset=request.preset, uri=request.uri, reason="fetch", message=str(exc)
        )

    if time.monotonic() - started > timeout_s:
        return ImageFailure(
            preset=request.preset, uri=request.uri, reason="timeout",
            message=f"fetch exceeded {timeout_s:.1f}s",
        )

    result = optimize(source, request.preset, uri=request.uri)
    if isinstance(result, OptimizedImage) and time.monotonic() - started > timeout_s:
        return ImageFailure(
            preset=request.preset, uri=request.uri, reason="timeout",
            message=f"optimize exceeded {timeout_s:.1f}s",
        )
    if isinstance(result, OptimizedImage):
        logger.debug(
            "  [%s] %s — %d KB → %d KB (estimate %d KB)",
            request.preset, request.uri, len(source) // 1024, len(result.data) // 1024,
            estimate_compressed_size(len(source), request.preset) // 1024,
        )
    return result


def optimize_batch(
    requests: Iterable[ImageRequest],
    fetch: Fetcher,
    *,
    max_workers: int = 8,
    timeout_s: float = 15.0,
    cancel_event: threading.Event | None = None,
) -> dict[ImageRequest, OptimizeResult]:
    """Run every request concurrently and return results keyed by request.

    Requests still unfinished when the batch deadline passes are cancelled
    and recorded as timeouts. Raises CompileCancelled if ``cancel_event`` is
    set before the join completes.
    """
    requests = list(dict.fromkeys(requests))
    results: dict[ImageRequest, OptimizeResult] = {}
    if not requests:
        logger.info("Stage 2 complete → no images to optimize")
        return results

    workers = max(1, min(max_workers, len(requests)))
    waves = -(-len(requests) // workers)  # ceil
    deadline = time.monotonic() + waves * timeout_s + _BATCH_SLACK_S

    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="optimize")
    try:
        futures: dict[Future, ImageRequest] = {
            executor.submit(fetch_and_optimize, req, fetch, timeout_s): req
            for req in requests
        }
        pending = set(futures)
        while pending:
            if cancel_event is not None and cancel_event.is_set():
                for f in pending:
                    f.cancel()
                raise CompileCancelled(f"cancelled with {len(pending)} image(s) outstanding")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                for f in pending:
                    f.cancel()
                    req = futures[f]
                    results[req] = ImageFailure(
                        preset=req.preset, uri=req.uri, reason="timeout",
                        message="batch deadline exceeded",
                    )
                break

            done, pending = wait(pending, timeout=min(_JOIN_POLL_S, remaining),
                                 return_when=FIRST_COMPLETED)
            for f in done:
                results[futures[f]] = f.result()
    finally:
        # Do not block on stragglers; their results are already discarded
        executor.shutdown(wait=False, cancel_futures=True)

    _log_batch_summary(results)
    return results


def estimate_compressed_size(original_size: int, preset: ImagePreset | str = "detail") -> int:
    """Rough embedded size in bytes of an HD photo after optimization (base64 included)."""
    if isinstance(preset, str):
        preset = PRESETS[preset]
    dimension_reduction = (preset.max_width * preset.max_height) / _HD_PIXELS
    return round(original_size * dimension_reduction * preset.quality * _BASE64_OVERHEAD)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _resize(img: Image.Image, preset: ImagePreset) -> Image.Image:
    target = scaled_size(img.width, img.height, preset)
    if target == img.size:
        return img
    return img.resize(target, Image.Resampling.LANCZOS)


def _to_rgb(img: Image.Image) -> Image.Image:
    """JPEG has no alpha channel: flatten transparency onto white."""
    if img.mode == "RGB":
        return img
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return img.convert("RGB")


def _log_batch_summary(results: dict[ImageRequest, OptimizeResult]) -> None:
    ok = [r for r in results.values() if isinstance(r, OptimizedImage)]
    failed = {req: r for req, r in results.items() if isinstance(r, ImageFailure)}

    logger.info("Stage 2 complete → %d image(s)", len(results))
    logger.info("  Optimized:  %d (%d KB embedded)", len(ok), sum(len(r.data) for r in ok) // 1024)
    logger.info("  Failed:     %d", len(failed))
    for req, failure in failed.items():
        logger.warning("  [%s] %s — %s: %s", req.preset, req.uri, failure.reason, failure.message)
