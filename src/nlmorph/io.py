# src/nlmorph/io.py
from __future__ import annotations

# General imports (stdlib)
import os
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Optional, Union

# Local imports
from . import nlxml, swc
from .exceptions import DataNotFound, FormatError, StructuralError
from .model import NeuronData

PathLike = Union[str, Path]


def discover_files(directory: PathLike, extension: str) -> List[Path]:
    """
    Recursively collect reconstruction files under a directory.

    Args:
        directory (PathLike): Root directory to search.
        extension (str): File extension to match, with or without the
            leading dot (".xml", "swc"). Matching is case-insensitive.

    Returns:
        List[Path]: Matching files, sorted for deterministic processing.

    Raises:
        DataNotFound: If the directory does not exist or holds no match.
    """
    # Validate the root directory exists on disk
    root = Path(directory)
    if not root.is_dir():
        raise DataNotFound(f"Directory not found: {root}")

    # Normalize the extension
    ext = extension.lower()
    if ext and not ext.startswith("."):
        ext = "." + ext

    # Walk the directory tree and collect matching files
    files: List[Path] = []
    for dirpath, _dirnames, filenames in os.walk(str(root)):
        for item in filenames:
            if item.lower().endswith(ext):
                files.append(Path(dirpath) / item)

    if not files:
        raise DataNotFound(f"No '*{ext}' files found under: '{root}'")

    return sorted(files)


def read_nlxml(path: PathLike) -> NeuronData:
    """
    Read a Neurolucida XML file.

    Raises:
        FormatError: If the file is not well-formed XML or holds malformed
            attributes (message names the file).
        OSError: If the file cannot be opened.
    """
    path = Path(path)
    try:
        root = ET.parse(str(path)).getroot()
        return nlxml.decode(root)
    except ET.ParseError as e:
        raise FormatError(f"Failed to read NLXML '{path}': {e}") from e
    except FormatError as e:
        raise FormatError(f"Failed to read NLXML '{path}': {e}") from e


def write_nlxml(data: NeuronData, path: PathLike, include_images: bool = False) -> None:
    """Write a Neurolucida XML file (UTF-8, with XML declaration)."""
    path = Path(path)
    text = nlxml.dumps(data, include_images=include_images)
    path.write_text(text, encoding="utf8")


def read_swc(path: PathLike, dangling: str = "error") -> NeuronData:
    """
    Read an SWC file and rebuild its trees.

    Use:
        Load the seven SWC columns with pandas, validate them into records and
        hand them to `swc.reconstruct`. Import is all-or-nothing.

    Args:
        path (PathLike): SWC file to read.
        dangling (str): Missing-parent policy, see `swc.reconstruct`.

    Returns:
        NeuronData: Reconstructed trees (no contours, markers or images).

    Raises:
        FormatError: On malformed rows or fields.
        StructuralError: On dangling parents, duplicate ids or cycles.
        OSError: If the file cannot be opened.
    """
    path = Path(path)
    try:
        records = swc.records_from_frame(swc.read_table(path))
        return swc.reconstruct(records, dangling=dangling)
    except FormatError as e:
        raise FormatError(f"Failed to read SWC '{path}': {e}") from e
    except StructuralError as e:
        raise StructuralError(f"Failed to read SWC '{path}': {e}") from e


def write_swc(data: NeuronData, path: PathLike, source: Optional[str] = None) -> None:
    """
    Flatten `data` and write it as SWC.

    Args:
        data (NeuronData): Model to write; only trees are represented.
        path (PathLike): Output file.
        source (Optional[str]): Name of the file this one was converted from,
            recorded in a header comment.
    """
    path = Path(path)
    header = [f"Converted from NLXML file {source}"] if source else []
    header.append("id type x y z radius parent")
    path.write_text(swc.format_records(swc.flatten(data), header=header), encoding="utf8")
