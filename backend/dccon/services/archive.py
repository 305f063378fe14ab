from __future__ import annotations

import zipfile
from io import BytesIO

from dccon.models.entities import PackageArchive, PackageItem
from dccon.utils.files import build_entry_name


def build_zip(items: list[PackageItem], filename: str) -> PackageArchive:
    buf = BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        for item in items:
            zf.writestr(build_entry_name(item.sort, item.title, item.ext), item.buffer)
    return PackageArchive(buffer=buf.getvalue(), filename=filename)
