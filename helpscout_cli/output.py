"""Response clean-up transforms and serialization for CLI/MCP output."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from html import unescape
from html.parser import HTMLParser
from typing import Any, Callable, Dict, List, Optional

import yaml
from tabulate import tabulate

OUTPUT_FORMATS = ("json", "yaml", "table")
METADATA_KEYS = ("_links", "_embedded")
TAG_STYLE_KEYS = ("color", "styles")
PLACEHOLDER_ZERO_KEYS = ("closedBy", "savedReplyId")

# Line breaks emitted around a block element; adjacent blocks share theirs.
_BLOCK_BREAKS = {
    "p": 2, "blockquote": 2, "pre": 2, "ul": 2, "ol": 2, "table": 2,
    "h1": 2, "h2": 2, "h3": 2, "h4": 2, "h5": 2, "h6": 2,
    "div": 1, "section": 1, "article": 1, "header": 1, "footer": 1, "li": 1, "tr": 1,
}
_SKIP_CONTENT_TAGS = {"script", "style", "head", "title"}
_HTML_TAG = re.compile(r"<[a-zA-Z/!]")


@dataclass(frozen=True)
class OutputOptions:
    compact: bool = False
    slim: bool = True
    plain: bool = False
    fields: Optional[str] = None
    output_format: str = "json"

    def field_list(self) -> List[str]:
        if not self.fields:
            return []
        return [f.strip() for f in self.fields.split(",") if f.strip()]


def map_objects(data: Any, visit: Callable[[Dict[str, Any]], Dict[str, Any]]) -> Any:
    """Apply ``visit`` to every object in a JSON tree, children first.

    Lists are mapped element-wise; scalars are returned untouched.
    """
    if isinstance(data, list):
        return [map_objects(item, visit) for item in data]
    if isinstance(data, dict):
        return visit({key: map_objects(value, visit) for key, value in data.items()})
    return data


class _PlainTextParser(HTMLParser):
    """Collects visible text; source whitespace collapses to single spaces."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.parts: List[str] = []
        self._skip_depth = 0
        self._pending_breaks = 0

    def _block(self, tag: str) -> None:
        self._pending_breaks = max(self._pending_breaks, _BLOCK_BREAKS[tag])

    def _line_break(self) -> None:
        if self.parts and self._pending_breaks:
            self.parts.append("\n" * self._pending_breaks)
        self._pending_breaks = 0
        self.parts.append("\n")

    def handle_starttag(self, tag, attrs):
        t = tag.lower()
        if t in _SKIP_CONTENT_TAGS:
            self._skip_depth += 1
        elif t == "br":
            self._line_break()
        elif t in _BLOCK_BREAKS:
            self._block(t)

    def handle_startendtag(self, tag, attrs):
        if tag.lower() in ("br", "hr"):
            self._line_break()

    def handle_endtag(self, tag):
        t = tag.lower()
        if t in _SKIP_CONTENT_TAGS:
            self._skip_depth = max(0, self._skip_depth - 1)
        elif t in _BLOCK_BREAKS:
            self._block(t)

    def handle_data(self, data):
        if self._skip_depth:
            return
        text = re.sub(r"\s+", " ", data)
        if self._pending_breaks:
            text = text.lstrip()
            if not text:
                return
            if self.parts:
                self.parts.append("\n" * self._pending_breaks)
            self._pending_breaks = 0
        if text:
            self.parts.append(text)


def html_to_plain_text(html: str) -> str:
    """Render an HTML message body as readable text.

    Images produce nothing and anchors keep only their label. Text with no
    markup keeps its own line breaks.
    """
    if _HTML_TAG.search(html):
        parser = _PlainTextParser()
        parser.feed(html)
        parser.close()
        text = "".join(parser.parts)
    else:
        text = unescape(html).replace("\xa0", " ")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def strip_metadata(data: Any) -> Any:
    return map_objects(data, lambda obj: {k: v for k, v in obj.items() if k not in METADATA_KEYS})


def convert_bodies_to_plain_text(data: Any) -> Any:
    def visit(obj: Dict[str, Any]) -> Dict[str, Any]:
        body = obj.get("body")
        if isinstance(body, str):
            obj["body"] = html_to_plain_text(body)
        return obj

    return map_objects(data, visit)


def strip_tag_styles(data: Any) -> Any:
    def visit(obj: Dict[str, Any]) -> Dict[str, Any]:
        if "id" in obj and "name" in obj and "slug" in obj:
            return {k: v for k, v in obj.items() if k not in TAG_STYLE_KEYS}
        return obj

    return map_objects(data, visit)


def build_name(first: Any = None, last: Any = None) -> Optional[str]:
    name = " ".join(str(part) for part in (first, last) if part)
    return name or None


def _is_person(obj: Dict[str, Any]) -> bool:
    return ("first" in obj or "last" in obj) and ("email" in obj or "id" in obj)


def _is_placeholder_person(obj: Dict[str, Any]) -> bool:
    # Help Scout fills unset person references with id 0 / "unknown".
    return obj.get("id") == 0 or obj.get("first") == "unknown"


def add_person_names(data: Any) -> Any:
    def visit(obj: Dict[str, Any]) -> Dict[str, Any]:
        if _is_person(obj) and not _is_placeholder_person(obj):
            name = build_name(obj.get("first"), obj.get("last"))
            if name:
                obj["name"] = name
        return obj

    return map_objects(data, visit)


def strip_placeholder_values(data: Any) -> Any:
    def visit(obj: Dict[str, Any]) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for key, value in obj.items():
            if key in PLACEHOLDER_ZERO_KEYS and value == 0 and not isinstance(value, bool):
                continue
            if isinstance(value, dict) and _is_placeholder_person(value):
                continue
            result[key] = value
        return result

    return map_objects(data, visit)


def strip_empty_arrays(data: Any) -> Any:
    return map_objects(data, lambda obj: {k: v for k, v in obj.items() if not (isinstance(v, list) and not v)})


def strip_photo_urls(data: Any) -> Any:
    return map_objects(data, lambda obj: {k: v for k, v in obj.items() if k != "photoUrl"})


def select_fields(data: Any, fields: List[str]) -> Any:
    """Keep only ``fields`` on the first object level of each subtree that has any of them."""
    if isinstance(data, list):
        return [select_fields(item, fields) for item in data]
    if isinstance(data, dict):
        if any(field in data for field in fields):
            return {field: data[field] for field in fields if field in data}
        return {key: select_fields(value, fields) for key, value in data.items()}
    return data


def process(data: Any, options: OutputOptions) -> Any:
    processed = data
    if options.slim:
        processed = strip_metadata(processed)
    if options.plain:
        processed = convert_bodies_to_plain_text(processed)
    processed = strip_tag_styles(processed)
    processed = add_person_names(processed)
    processed = strip_placeholder_values(processed)
    processed = strip_empty_arrays(processed)
    processed = strip_photo_urls(processed)
    fields = options.field_list()
    if fields:
        processed = select_fields(processed, fields)
    return processed


def _table_rows(data: Any) -> Any:
    # A list envelope ({"conversations": [...], "page": {...}}) renders its collection.
    if isinstance(data, dict):
        others = [v for k, v in data.items() if k != "page"]
        if "page" in data and len(others) == 1 and isinstance(others[0], list):
            return others[0]
        return [data]
    if isinstance(data, list):
        return data
    return [{"value": data}]


def format_table(data: Any) -> str:
    rows = [row if isinstance(row, dict) else {"value": row} for row in _table_rows(data)]
    headers: List[str] = []
    for row in rows:
        for key, value in row.items():
            if key not in headers and not isinstance(value, (dict, list)):
                headers.append(key)
    table = [[row.get(h, "") for h in headers] for row in rows]
    return tabulate(table, headers=headers, tablefmt="github")


def serialize(data: Any, options: OutputOptions) -> str:
    if options.output_format == "yaml":
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True).rstrip("\n")
    if options.output_format == "table":
        return format_table(data)
    if options.compact:
        return json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    return json.dumps(data, ensure_ascii=False, indent=2)


def render(data: Any, options: Optional[OutputOptions] = None) -> str:
    options = options or OutputOptions()
    return serialize(process(data, options), options)


def emit(data: Any, options: Optional[OutputOptions] = None) -> None:
    print(render(data, options))
