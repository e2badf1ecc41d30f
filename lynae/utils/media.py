"""ffmpeg helpers for the media plugins.

Conversion is delegated to the external ``ffmpeg``/``ffprobe`` binaries;
inputs and outputs go through files in the configured temp directory.
"""

import asyncio
import json
import time
import uuid
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

STICKER_SIZE = 512


class FFmpegError(RuntimeError):
    pass


def detect_file_type(data: bytes) -> tuple[str, str, str] | None:
    """Return ``(kind, ext, mimetype)`` from magic bytes, or None."""
    if len(data) < 12:
        return None
    header = data[:12].hex()
    if header.startswith("ffd8ff"):
        return "image", ".jpg", "image/jpeg"
    if header.startswith("89504e47"):
        return "image", ".png", "image/png"
    if header.startswith("47494638"):
        return "image", ".gif", "image/gif"
    if data[4:8] == b"ftyp":
        return "video", ".mp4", "video/mp4"
    if header.startswith("1a45dfa3"):
        return "video", ".mkv", "video/x-matroska"
    return None


@contextmanager
def temp_paths(temp_dir: Path, prefix: str, *suffixes: str):
    """Yield fresh paths in ``temp_dir``; they are removed on exit."""
    temp_dir.mkdir(parents=True, exist_ok=True)
    stamp = f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"
    paths = [temp_dir / f"{stamp}{suffix}" for suffix in suffixes]
    try:
        yield paths
    finally:
        for path in paths:
            path.unlink(missing_ok=True)


async def _run(program: str, *args: str, timeout: float = 60.0) -> bytes:
    try:
        process = await asyncio.create_subprocess_exec(
            program,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise FFmpegError(f"{program} is not installed") from e
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        raise FFmpegError(f"{program} timed out after {timeout}s")
    if process.returncode != 0:
        tail = stderr.decode("utf-8", errors="replace").strip().splitlines()[-1:] or [""]
        raise FFmpegError(f"{program} exited with {process.returncode}: {tail[0]}")
    return stdout


async def probe_image(path: Path) -> dict:
    """Width, height and pixel format of the first video stream (best effort)."""
    try:
        out = await _run(
            "ffprobe", "-v", "error", "-select_streams", "v:0",
            "-show_entries", "stream=width,height,pix_fmt", "-of", "json", str(path),
            timeout=5,
        )
        streams = json.loads(out).get("streams") or [{}]
        return streams[0]
    except (FFmpegError, ValueError) as e:
        logger.debug(f"ffprobe failed for {path.name}: {e}")
        return {}


async def image_to_webp(data: bytes, temp_dir: Path) -> bytes:
    """Scale an image to a 512x512 WebP, center-cropping anything not roughly square."""
    with temp_paths(temp_dir, "sticker", ".png", ".webp") as (src, dst):
        src.write_bytes(data)
        info = await probe_image(src)
        width, height = info.get("width") or 0, info.get("height") or 0
        ratio = width / height if width and height else 1
        if 0.95 <= ratio <= 1.05:
            vf = f"scale={STICKER_SIZE}:{STICKER_SIZE}"
        else:
            vf = (
                f"scale={STICKER_SIZE}:{STICKER_SIZE}:force_original_aspect_ratio=increase,"
                f"crop={STICKER_SIZE}:{STICKER_SIZE}"
            )
        await _run(
            "ffmpeg", "-i", str(src), "-vf", vf, "-quality", "90",
            "-compression_level", "6", "-f", "webp", "-y", str(dst),
            timeout=30,
        )
        if not dst.exists() or dst.stat().st_size == 0:
            raise FFmpegError("Failed to create WebP file.")
        return dst.read_bytes()


async def video_to_mp3(data: bytes, temp_dir: Path) -> bytes:
    with temp_paths(temp_dir, "tomp3", ".mp4", ".mp3") as (src, dst):
        src.write_bytes(data)
        await _run(
            "ffmpeg", "-i", str(src), "-vn", "-acodec", "libmp3lame", "-b:a", "128k", "-y", str(dst),
            timeout=120,
        )
        if not dst.exists():
            raise FFmpegError("Conversion failed, output file not found.")
        return dst.read_bytes()


async def shrink_image(data: bytes, temp_dir: Path, size: int = STICKER_SIZE) -> bytes:
    """Fit an image inside ``size``x``size``; returns the input unchanged if ffmpeg fails."""
    with temp_paths(temp_dir, "pp", ".jpg", ".out.jpg") as (src, dst):
        src.write_bytes(data)
        try:
            await _run(
                "ffmpeg", "-i", str(src),
                "-vf", f"scale={size}:{size}:force_original_aspect_ratio=decrease",
                "-y", str(dst),
                timeout=30,
            )
            return dst.read_bytes()
        except (FFmpegError, OSError) as e:
            logger.debug(f"Image resize skipped: {e}")
            return data
