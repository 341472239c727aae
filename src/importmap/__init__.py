"""Import map construction and HTML patching."""

from .builder import ImportMap, ImportMapBuilder, ModuleRequest, module_url
from .html import HtmlPatcher, PatchOptions, Replacement, build_module_ref_regex, merge_import_maps

__all__ = [
    "ImportMap",
    "ImportMapBuilder",
    "ModuleRequest",
    "module_url",
    "HtmlPatcher",
    "PatchOptions",
    "Replacement",
    "build_module_ref_regex",
    "merge_import_maps",
]
