import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Union

import regex as re

from ..config import settings
from ..models.collaborators import CodeAnalysis, ComponentUsage, PropValue

logger = logging.getLogger(settings.SERVICE_NAME + ".code_reader")

SOURCE_SUFFIXES = (".tsx", ".jsx")
IGNORED_DIRS = {"node_modules", ".next", "dist", "build", ".git"}
FALLBACK_FILE_MARKERS = ("page.", "layout.", "App.", "index.")

UI_IMPORT_PATTERNS = [
    re.compile(r"""from\s+["']@/components/ui/"""),
    re.compile(r"""from\s+["']~/components/ui/"""),
    re.compile(r"""from\s+["']\.\.?/components/ui/"""),
]

IMPORT_PATTERN = re.compile(
    r"""import\s+(?P<clause>[\w\s{},$*]+?)\s+from\s+["'](?P<source>[^"']+)["']""",
    re.DOTALL,
)

# Balanced braces, skipping over string literals, shared by the JSX patterns
_DEFINE_BRACES = r"""(?(DEFINE)(?P<braces>\{(?:[^{}"'`]++|"[^"]*"|'[^']*'|`[^`]*`|(?&braces))*\}))"""

OPEN_TAG_PATTERN = re.compile(
    _DEFINE_BRACES
    + r"""<(?P<name>[A-Z]\w*(?:\.\w+)?)"""
    + r"""(?P<attrs>(?:\s+(?:[A-Za-z_][\w:-]*(?:\s*=\s*(?:"[^"]*"|'[^']*'|(?&braces)))?|(?&braces)))*)"""
    + r"""\s*(?P<self_closing>/?)>""",
    re.DOTALL,
)

ATTR_PATTERN = re.compile(
    _DEFINE_BRACES
    + r"""(?:(?P<spread>(?&braces))"""
    + r"""|(?P<prop>[A-Za-z_][\w:-]*)(?:\s*=\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<expr>(?&braces))))?)""",
    re.DOTALL,
)

STRING_EXPR_PATTERN = re.compile(r"""^\{\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)')\s*\}$""")
CHILD_TEXT_PATTERN = re.compile(
    r"""\{\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)')\s*\}|(?P<expr>\{[^{}]*\})|(?P<text>[^{}]+)"""
)


def _iter_source_files(root: Path) -> Iterator[Path]:
    for path in sorted(root.rglob("*")):
        if path.suffix not in SOURCE_SUFFIXES or not path.is_file():
            continue
        relative_parts = path.relative_to(root).parts
        if any(part in IGNORED_DIRS for part in relative_parts[:-1]):
            continue
        if ".test." in path.name or ".spec." in path.name:
            continue
        yield path


def _ui_import_names(content: str) -> Set[str]:
    """Local names bound by imports from a components/ui module."""
    names: Set[str] = set()
    for match in IMPORT_PATTERN.finditer(content):
        if "/components/ui/" not in match.group("source"):
            continue
        clause = match.group("clause")
        default_part, _, rest = clause.partition("{")
        default_name = default_part.strip().rstrip(",").strip()
        if default_name and re.fullmatch(r"[A-Za-z_$][\w$]*", default_name):
            names.add(default_name)
        for spec in rest.rstrip("}").split(","):
            spec = spec.replace("}", "").strip()
            if not spec:
                continue
            # "Card as BaseCard" binds BaseCard
            names.add(spec.split(" as ")[-1].strip())
    return names


def _parse_props(attrs: str) -> Dict[str, PropValue]:
    props: Dict[str, PropValue] = {}
    for match in ATTR_PATTERN.finditer(attrs):
        prop = match.group("prop")
        if prop is None:
            # Spread props: {...rest}
            continue
        if match.group("dq") is not None:
            props[prop] = match.group("dq")
        elif match.group("sq") is not None:
            props[prop] = match.group("sq")
        elif match.group("expr") is not None:
            literal = STRING_EXPR_PATTERN.match(match.group("expr"))
            if literal:
                props[prop] = literal.group("dq") if literal.group("dq") is not None else literal.group("sq")
        else:
            # Bare attribute: <Button disabled>
            props[prop] = True
    return props


def _direct_text(content: str, start: int) -> Optional[str]:
    """Plain text (and string-literal expressions) directly after an opening tag."""
    end = content.find("<", start)
    segment = content[start:end] if end != -1 else content[start:]
    parts: List[str] = []
    for match in CHILD_TEXT_PATTERN.finditer(segment):
        if match.group("text") is not None:
            text = " ".join(match.group("text").split())
            if text:
                parts.append(text)
        elif match.group("expr") is None:
            parts.append(match.group("dq") if match.group("dq") is not None else match.group("sq"))
    return " ".join(parts) if parts else None


def extract_component_usages(content: str, source_file: str) -> List[ComponentUsage]:
    """Find JSX usages of components imported from components/ui in one file."""
    imported = _ui_import_names(content)
    if not imported:
        return []

    usages: List[ComponentUsage] = []
    for match in OPEN_TAG_PATTERN.finditer(content):
        name = match.group("name")
        if name.split(".")[0] not in imported:
            continue
        children = None if match.group("self_closing") else _direct_text(content, match.end())
        usages.append(
            ComponentUsage(
                name=name,
                props=_parse_props(match.group("attrs")),
                children=children,
                source_file=source_file,
                line=content.count("\n", 0, match.start()) + 1,
            )
        )
    return usages


def read_project_code(project_path: Union[str, Path], max_bytes: Optional[int] = None) -> CodeAnalysis:
    """
    Collect the source relevant to the rendered UI: files importing from
    ``components/ui`` (or, if there are none, page/layout/App/index files),
    concatenated up to ``max_bytes``, plus every component usage found in them.
    """
    root = Path(project_path).resolve()
    limit = settings.MAX_SOURCE_BYTES if max_bytes is None else max_bytes
    if not root.is_dir():
        raise FileNotFoundError(f"Project path is not a directory: {root}")

    files = list(_iter_source_files(root))
    usages: List[ComponentUsage] = []
    relevant: List[str] = []
    source = ""

    def append_source(rel_path: str, content: str) -> None:
        nonlocal source
        section = f"\n// --- {rel_path} ---\n{content}\n"
        if len(source) + len(section) <= limit:
            source += section
        else:
            logger.debug(f"Source budget reached, leaving {rel_path} out of the prompt")

    for path in files:
        content = path.read_text(encoding="utf-8", errors="replace")
        rel_path = path.relative_to(root).as_posix()
        if not any(pattern.search(content) for pattern in UI_IMPORT_PATTERNS):
            continue
        relevant.append(rel_path)
        usages.extend(extract_component_usages(content, rel_path))
        append_source(rel_path, content)

    if not relevant:
        logger.info("No components/ui imports found, falling back to page and layout files")
        for path in files:
            rel_path = path.relative_to(root).as_posix()
            if any(marker in rel_path for marker in FALLBACK_FILE_MARKERS):
                relevant.append(rel_path)
                append_source(rel_path, path.read_text(encoding="utf-8", errors="replace"))

    logger.info(f"Read {len(relevant)} relevant files with {len(usages)} component usages from {root}")
    return CodeAnalysis(source_code=source, component_usages=usages, files=relevant)
