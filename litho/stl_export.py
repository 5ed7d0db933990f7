"""
ChromaLitho - STL Export
STL 导出模块 - ASCII / 二进制 STL 与 ZIP 打包

The bundle is written to a temporary file next to the target and renamed
into place only once complete; a failed export leaves nothing behind.
"""

import io
import os
import tempfile
import zipfile
from typing import Dict, Optional, Sequence, Tuple

import trimesh
from trimesh.exchange.stl import export_stl, export_stl_ascii

from config import StlFormat
from litho.errors import ExportError


def stl_bytes(mesh: trimesh.Trimesh, fmt: StlFormat = StlFormat.ASCII,
              name: str = "") -> bytes:
    """
    Encode one mesh as STL.

    ASCII: ``solid <name>`` / facet blocks / ``endsolid <name>``.
    Binary: 80-byte header, uint32 triangle count, then per triangle the
    normal and three vertices as float32 followed by a uint16 attribute.
    """
    if fmt == StlFormat.BINARY:
        return export_stl(mesh)

    text = export_stl_ascii(mesh)
    # Name the solid on both ends
    lines = text.rstrip("\n").split("\n")
    lines[0] = f"solid {name}".rstrip()
    lines[-1] = f"endsolid {name}".rstrip()
    return ("\n".join(lines) + "\n").encode("ascii")


def write_stl(mesh: trimesh.Trimesh, path: str, fmt: StlFormat = StlFormat.ASCII,
              name: str = "") -> None:
    """Write a single STL file."""
    data = stl_bytes(mesh, fmt, name or os.path.splitext(os.path.basename(path))[0])
    try:
        with open(path, "wb") as f:
            f.write(data)
    except OSError as e:
        raise ExportError(f"cannot write {path}: {e}") from e


def png_bytes(image) -> bytes:
    """Encode a PIL image as PNG."""
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def export_bundle(layers: Sequence[Tuple[str, Optional[trimesh.Trimesh]]], path: str,
                  fmt: StlFormat = StlFormat.ASCII,
                  extras: Optional[Dict[str, bytes]] = None) -> str:
    """
    Write every non-empty layer as ``<unit>.stl`` into one ZIP archive.

    Args:
        layers: (unit name, mesh) pairs; None or empty meshes are skipped
        path: Target archive path
        fmt: STL encoding
        extras: Additional archive entries (e.g. preview PNGs)

    Returns:
        str: The archive path

    Raises:
        ExportError: any I/O failure; the partial archive is removed
    """
    directory = os.path.dirname(os.path.abspath(path))
    try:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".chromalitho_", suffix=".zip.tmp", dir=directory)
    except OSError as e:
        raise ExportError(f"cannot create output in {directory}: {e}") from e

    written = 0
    try:
        with os.fdopen(fd, "wb") as raw:
            with zipfile.ZipFile(raw, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                for unit, mesh in layers:
                    if mesh is None or len(mesh.faces) == 0:
                        print(f"[EXPORT] Skipping empty unit {unit}")
                        continue
                    zf.writestr(f"{unit}.stl", stl_bytes(mesh, fmt, unit))
                    written += 1
                    print(f"[EXPORT] {unit}.stl ({len(mesh.faces)} triangles)")
                for entry, data in (extras or {}).items():
                    zf.writestr(entry, data)
        os.replace(tmp_path, path)
    except OSError as e:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise ExportError(f"failed to write {path}: {e}") from e
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise

    print(f"[EXPORT] ✅ {written} STL file(s) → {path}")
    return path
