"""Parsers for the box-drawn tables printed by ``cc-switch`` list commands.

Every line of output is classified first, by the predicates in
``LINE_CLASSIFIERS`` evaluated in order (the first match wins):

1. BLANK   - empty after trimming
2. COMMENT - starts with ``#`` or ``===``
3. BORDER  - nothing but box-drawing glyphs and whitespace
4. FOOTER  - starts with an info or pointer glyph (``ℹ``, ``→``)
5. TABLE   - contains the ``┆`` cell separator
6. LIST    - anything else (``<id> <label> [active]`` style output)

Only TABLE and LIST lines can produce rows. Parsing never raises; a line
that does not fit the grammar of the record kind is dropped.
"""

import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Dict, List, Optional, Tuple

CELL_SEPARATOR = "┆"
BOX_GLYPHS = "┌┐└┘├┤┬┴┼─═│║╞╡╪╤╧╟╢╥╨╫╬╭╮╯╰╱╲╳╌"
# Glyphs that only appear on rule/border rows, never inside a data row.
RULE_GLYPHS = "┌┐└┘├┤┬┴┼─═╞╡╪╤╧╟╢╥╨╫╬╌"
# Border fragments that leak into cells when columns are misaligned.
CELL_NOISE = "│┌┐└┘╞═╪╡║"
FOOTER_GLYPHS = ("ℹ", "→")
ACTIVE_GLYPH = "✓"

_BORDER_LINE = re.compile(f"^[{BOX_GLYPHS}\\s]+$")
_CELL_NOISE = re.compile(f"[{CELL_NOISE}]")
_LIST_MARKERS = re.compile(r"\[active\]|\[\*\]")
_HAS_ALNUM = re.compile(r"[A-Za-z0-9]")
_CURRENT_FOOTER = re.compile(r"→\s*Current:\s*(\S+)")
_CURRENT_PROVIDER = re.compile(r"Current Provider:\s*(\S+)")
_LATENCY = re.compile(r"Latency:\s*(\d+)ms")
_DB_FILE = re.compile(r"DB file:\s*(.+)")
_IMPORTED = re.compile(r"Imported:\s*(.+)", re.IGNORECASE)


class LineKind(Enum):
    BLANK = auto()
    COMMENT = auto()
    BORDER = auto()
    FOOTER = auto()
    TABLE = auto()
    LIST = auto()


LINE_CLASSIFIERS: Tuple[Tuple[LineKind, Callable[[str], bool]], ...] = (
    (LineKind.BLANK, lambda line: not line),
    (LineKind.COMMENT, lambda line: line.startswith("#") or line.startswith("===")),
    (LineKind.BORDER, lambda line: bool(_BORDER_LINE.match(line))),
    (LineKind.FOOTER, lambda line: line.startswith(FOOTER_GLYPHS)),
    (LineKind.TABLE, lambda line: CELL_SEPARATOR in line),
    (LineKind.LIST, lambda line: True),
)


def classify_line(line: str) -> LineKind:
    """Classify an already trimmed line."""
    for kind, predicate in LINE_CLASSIFIERS:
        if predicate(line):
            return kind
    return LineKind.LIST


@dataclass
class TableRow:
    """Cells of one accepted line, keyed by column name, in column order."""

    cells: Dict[str, str]
    active: bool
    line_no: int

    def get(self, column: str) -> str:
        return self.cells.get(column, "")


@dataclass(frozen=True)
class TableGrammar:
    """Per record kind layout of the table and list forms."""

    columns: Tuple[str, ...]
    header_labels: Tuple[str, ...]
    min_cells: int
    id_column: str
    label_column: str
    marker_column: Optional[str] = None
    allow_list: bool = False
    empty_notice: Optional[str] = None

    def header_patterns(self) -> List["re.Pattern[str]"]:
        return [
            re.compile(r"(?<![A-Za-z0-9])" + re.escape(label) + r"(?![A-Za-z0-9])")
            for label in self.header_labels
        ]


PROVIDER_GRAMMAR = TableGrammar(
    columns=("marker", "id", "name", "api_url"),
    header_labels=("ID", "Name", "API URL"),
    min_cells=3,
    id_column="id",
    label_column="name",
    marker_column="marker",
    allow_list=True,
)
MCP_GRAMMAR = TableGrammar(
    columns=("marker", "id", "name", "command"),
    header_labels=("ID", "Name"),
    min_cells=3,
    id_column="id",
    label_column="name",
    empty_notice="No MCP servers found",
)
PROMPT_GRAMMAR = TableGrammar(
    columns=("marker", "id", "name", "description", "updated"),
    header_labels=("ID", "Name"),
    min_cells=3,
    id_column="id",
    label_column="name",
    marker_column="marker",
)
SKILL_GRAMMAR = TableGrammar(
    columns=("id", "name", "description"),
    header_labels=("ID", "Name"),
    min_cells=2,
    id_column="id",
    label_column="name",
    empty_notice="No installed skills found",
)
ENV_GRAMMAR = TableGrammar(
    columns=("variable", "value", "source_type", "source_location"),
    header_labels=("Variable",),
    min_cells=4,
    id_column="variable",
    label_column="value",
)


def clean_cell(cell: str) -> str:
    return _CELL_NOISE.sub("", cell.strip()).strip()


def split_cells(line: str) -> List[str]:
    return [clean_cell(cell) for cell in line.split(CELL_SEPARATOR)]


def is_identifier(value: str) -> bool:
    """Reject empty ids and leftovers of borders or footers."""
    if not value or not _HAS_ALNUM.search(value):
        return False
    if value[0] in BOX_GLYPHS:
        return False
    return not any(glyph in value for glyph in FOOTER_GLYPHS)


def _parse_table_line(line: str, line_no: int, grammar: TableGrammar, headers) -> Optional[TableRow]:
    if any(pattern.search(line) for pattern in headers):
        return None
    if any(glyph in line for glyph in RULE_GLYPHS):
        return None
    cells = split_cells(line)
    if len(cells) < grammar.min_cells:
        return None
    named = {column: (cells[index] if index < len(cells) else "") for index, column in enumerate(grammar.columns)}
    if not is_identifier(named[grammar.id_column]):
        return None
    active = bool(grammar.marker_column) and ACTIVE_GLYPH in named.get(grammar.marker_column, "")
    return TableRow(cells=named, active=active, line_no=line_no)


def _parse_list_line(line: str, line_no: int, grammar: TableGrammar) -> Optional[TableRow]:
    active = bool(_LIST_MARKERS.search(line))
    parts = _LIST_MARKERS.sub("", line).split()
    if not parts or not is_identifier(parts[0]):
        return None
    identifier = parts[0]
    label = " ".join(parts[1:]) or identifier
    cells = {column: "" for column in grammar.columns}
    cells[grammar.id_column] = identifier
    cells[grammar.label_column] = label
    return TableRow(cells=cells, active=active, line_no=line_no)


def parse_rows(output: str, grammar: TableGrammar) -> List[TableRow]:
    """Decode CLI output into rows, keeping source order."""
    if grammar.empty_notice and grammar.empty_notice in output:
        return []
    headers = grammar.header_patterns()
    rows: List[TableRow] = []
    for line_no, raw_line in enumerate(output.splitlines(), start=1):
        line = raw_line.strip()
        kind = classify_line(line)
        row = None
        if kind is LineKind.TABLE:
            row = _parse_table_line(line, line_no, grammar, headers)
        elif kind is LineKind.LIST and grammar.allow_list:
            row = _parse_list_line(line, line_no, grammar)
        if row is not None:
            rows.append(row)
    return rows


def extract_current_id(output: str) -> Optional[str]:
    """Find the ``→ Current: <id>`` footer announcement, if any."""
    for raw_line in output.splitlines():
        match = _CURRENT_FOOTER.search(raw_line)
        if match:
            return match.group(1)
    return None


# ---------------------------------------------------------------------------
# Typed records, one per list command
# ---------------------------------------------------------------------------


@dataclass
class ProviderRow:
    id: str
    name: str
    api_url: str = ""
    is_active: bool = False
    row: Optional[TableRow] = field(default=None, compare=False, repr=False)


@dataclass
class McpServerRow:
    id: str
    name: str
    command: str = ""
    row: Optional[TableRow] = field(default=None, compare=False, repr=False)


@dataclass
class PromptRow:
    id: str
    name: str
    description: str = ""
    updated: str = ""
    is_active: bool = False
    row: Optional[TableRow] = field(default=None, compare=False, repr=False)


@dataclass
class SkillRow:
    id: str
    name: str
    description: str = ""
    installed: bool = True
    row: Optional[TableRow] = field(default=None, compare=False, repr=False)


@dataclass
class EnvVarRow:
    variable: str
    value: str
    source_type: str
    source_location: str
    row: Optional[TableRow] = field(default=None, compare=False, repr=False)


def parse_providers(output: str) -> List[ProviderRow]:
    providers = []
    for row in parse_rows(output, PROVIDER_GRAMMAR):
        name = row.get("name")
        if not name:
            continue
        providers.append(ProviderRow(row.get("id"), name, row.get("api_url"), row.active, row))
    return providers


def parse_mcp_servers(output: str) -> List[McpServerRow]:
    return [McpServerRow(row.get("id"), row.get("name"), row.get("command"), row) for row in parse_rows(output, MCP_GRAMMAR)]


def parse_prompts(output: str) -> List[PromptRow]:
    return [
        PromptRow(row.get("id"), row.get("name"), row.get("description"), row.get("updated"), row.active, row)
        for row in parse_rows(output, PROMPT_GRAMMAR)
    ]


def parse_skills(output: str) -> List[SkillRow]:
    return [
        SkillRow(row.get("id"), row.get("name"), row.get("description"), True, row)
        for row in parse_rows(output, SKILL_GRAMMAR)
    ]


def parse_env_vars(output: str) -> List[EnvVarRow]:
    return [
        EnvVarRow(row.get("variable"), row.get("value"), row.get("source_type"), row.get("source_location"), row)
        for row in parse_rows(output, ENV_GRAMMAR)
    ]


# ---------------------------------------------------------------------------
# Less regular outputs
# ---------------------------------------------------------------------------


@dataclass
class SkillRepo:
    owner: str
    name: str
    branch: str
    enabled: bool


@dataclass
class DiscoveredSkill:
    name: str
    description: str = ""
    installed: bool = False


@dataclass
class UnmanagedSkill:
    name: str
    path: str
    app: str


def parse_skill_repos(output: str) -> List[SkillRepo]:
    repos = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if classify_line(line) is not LineKind.TABLE:
            continue
        cells = split_cells(line)
        if len(cells) < 3 or "/" not in cells[0]:
            continue
        owner, _, name = cells[0].partition("/")
        if owner and name:
            repos.append(SkillRepo(owner, name, cells[1], ACTIVE_GLYPH in cells[2]))
    return repos


def parse_discovered_skills(output: str) -> List[DiscoveredSkill]:
    skills = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        kind = classify_line(line)
        if kind in (LineKind.BLANK, LineKind.COMMENT, LineKind.BORDER, LineKind.FOOTER):
            continue
        if "Directory" in line or "Name" in line or "Available" in line:
            continue
        if kind is LineKind.TABLE:
            if any(glyph in line for glyph in RULE_GLYPHS):
                continue
            cells = split_cells(line)
            if len(cells) < 2 or not is_identifier(cells[1]):
                continue
            label = cells[2] if len(cells) > 2 else ""
            skills.append(
                DiscoveredSkill(cells[1], label if label != cells[1] else "", ACTIVE_GLYPH in cells[0])
            )
        else:
            parts = re.split(r"\s{2,}", line)
            if is_identifier(parts[0]):
                description = parts[1] if len(parts) > 1 else ""
                skills.append(DiscoveredSkill(parts[0], description.replace("[installed]", "").strip(), "[installed]" in line))
    return skills


def parse_unmanaged_skills(output: str) -> List[UnmanagedSkill]:
    if "No unmanaged skills found" in output:
        return []
    skills = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if classify_line(line) is not LineKind.TABLE:
            continue
        cells = split_cells(line)
        if len(cells) < 3 or cells[0] == "Name" or not is_identifier(cells[0]):
            continue
        skills.append(UnmanagedSkill(cells[0], cells[1], cells[2]))
    return skills


def parse_key_values(output: str) -> Dict[str, str]:
    """Read ``key: value`` / ``key = value`` lines (``config show``, ``skills info``)."""
    values: Dict[str, str] = {}
    for raw_line in output.splitlines():
        line = raw_line.strip()
        colon = line.find(":")
        equals = line.find("=")
        if colon > 0:
            key, value = line[:colon], line[colon + 1:]
        elif equals > 0:
            key, value = line[:equals], line[equals + 1:]
        else:
            continue
        if key.strip():
            values[key.strip()] = value.strip()
    return values


def parse_skill_info(output: str) -> Optional[Dict[str, object]]:
    info: Dict[str, object] = {}
    for key, value in parse_key_values(output).items():
        key = key.lower()
        if key in ("name", "description", "version", "author", "path"):
            info[key] = value
        elif key in ("enabled", "installed"):
            info[key] = value.lower() in ("true", "yes")
    return info if info.get("name") else None


def extract_current_provider_line(output: str) -> Optional[str]:
    match = _CURRENT_PROVIDER.search(output)
    return match.group(1) if match else None


def extract_latency_ms(output: str) -> Optional[int]:
    match = _LATENCY.search(output)
    return int(match.group(1)) if match else None


def extract_db_path(output: str) -> Optional[str]:
    match = _DB_FILE.search(output)
    return match.group(1).strip() if match else None


def extract_imported_skills(output: str) -> List[str]:
    match = _IMPORTED.search(output)
    if not match:
        return []
    return [name.strip() for name in match.group(1).split(",") if name.strip()]
