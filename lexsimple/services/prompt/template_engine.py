"""Prompt template rendering.

Supported syntax:
- {{ name }} and {{ item.field }} substitution
- {% if name %}...{% else %}...{% endif %} (also "if not name")
- {% for item in collection %}...{% endfor %}, with loop.index,
  loop.index0, loop.first and loop.last inside the body

Rendering is a pure function of (template, variables): parsed templates are
cached by body text.
"""

import json
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

import structlog

from lexsimple.models.prompt import PromptTemplate
from lexsimple.utils.exceptions import TemplateSyntaxError, TemplateValidationError

logger = structlog.get_logger()

NAME = r"[a-zA-Z_][a-zA-Z0-9_]*(?:\.[a-zA-Z_][a-zA-Z0-9_]*)*"
VARIABLE_PATTERN = re.compile(r"\{\{\s*(" + NAME + r")\s*\}\}")
TAG_PATTERN = re.compile(r"\{%\s*(.*?)\s*%\}", re.DOTALL)
IF_TAG = re.compile(r"^if\s+(not\s+)?(" + NAME + r")$")
FOR_TAG = re.compile(r"^for\s+([a-zA-Z_][a-zA-Z0-9_]*)\s+in\s+(" + NAME + r")$")

FALSE_LIKE_STRINGS = {"false", "0"}


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


MISSING = _Missing()


@dataclass
class _Text:
    text: str


@dataclass
class _If:
    name: str
    negate: bool
    body: List["_Node"] = field(default_factory=list)
    else_body: List["_Node"] = field(default_factory=list)


@dataclass
class _For:
    item: str
    collection: str
    body: List["_Node"] = field(default_factory=list)


_Node = Union[_Text, _If, _For]


@dataclass
class TemplateValidation:
    """Variables a template needs but did not get, and ones it ignores."""

    missing: List[str]
    unused: List[str]

    @property
    def is_valid(self) -> bool:
        return not self.missing


@lru_cache(maxsize=256)
def _parse(body: str) -> Tuple[_Node, ...]:
    """Parse a template into a node tree.

    Raises:
        TemplateSyntaxError: Unbalanced or unknown tags
    """
    root: List[_Node] = []
    # Each frame: (node or None for root, list currently being filled)
    stack: List[Tuple[Optional[Union[_If, _For]], List[_Node]]] = [(None, root)]
    position = 0

    for match in TAG_PATTERN.finditer(body):
        if match.start() > position:
            stack[-1][1].append(_Text(body[position:match.start()]))
        position = match.end()
        tag = match.group(1).strip()
        current = stack[-1][0]

        if_match = IF_TAG.match(tag)
        for_match = FOR_TAG.match(tag)
        if if_match:
            node: Union[_If, _For] = _If(
                name=if_match.group(2), negate=bool(if_match.group(1))
            )
            stack[-1][1].append(node)
            stack.append((node, node.body))
        elif for_match:
            node = _For(item=for_match.group(1), collection=for_match.group(2))
            stack[-1][1].append(node)
            stack.append((node, node.body))
        elif tag == "else":
            if not isinstance(current, _If) or stack[-1][1] is current.else_body:
                raise TemplateSyntaxError("{% else %} outside of an {% if %} block")
            stack[-1] = (current, current.else_body)
        elif tag == "endif":
            if not isinstance(current, _If):
                raise TemplateSyntaxError("{% endif %} without matching {% if %}")
            stack.pop()
        elif tag == "endfor":
            if not isinstance(current, _For):
                raise TemplateSyntaxError("{% endfor %} without matching {% for %}")
            stack.pop()
        else:
            raise TemplateSyntaxError(f"Unknown template tag: {{% {tag} %}}")

    if len(stack) > 1:
        unclosed = stack[-1][0]
        kind = "if" if isinstance(unclosed, _If) else "for"
        raise TemplateSyntaxError(f"Unclosed {{% {kind} %}} block")
    if position < len(body):
        root.append(_Text(body[position:]))
    return tuple(root)


def resolve(name: str, scope: Mapping[str, Any]) -> Any:
    """Look up a dotted name; returns MISSING when any segment is absent."""
    head, *rest = name.split(".")
    if head not in scope:
        return MISSING
    value = scope[head]
    for key in rest:
        if isinstance(value, Mapping):
            if key not in value:
                return MISSING
            value = value[key]
        elif hasattr(value, key) and not key.startswith("_"):
            value = getattr(value, key)
        else:
            return MISSING
    return value


def is_truthy(value: Any) -> bool:
    """Template truthiness: absent, empty, blank or false-like values are falsy."""
    if value is MISSING or value is None:
        return False
    if isinstance(value, str):
        stripped = value.strip()
        return stripped != "" and stripped.lower() not in FALSE_LIKE_STRINGS
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) > 0
    return bool(value)


def format_value(value: Any) -> str:
    if value is None or value is MISSING:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(format_value(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


class TemplateEngine:
    """Renders prompt templates from a variable mapping.

    Missing variables render as empty strings unless strict=True, in which
    case TemplateValidationError lists every missing name.
    """

    def render(
        self,
        template_body: str,
        variables: Mapping[str, Any],
        strict: bool = False,
    ) -> str:
        """Render a template body.

        Raises:
            TemplateSyntaxError: Malformed control blocks
            TemplateValidationError: strict=True and variables are missing
        """
        nodes = _parse(template_body)
        missing: List[str] = []
        rendered = self._render_nodes(nodes, dict(variables), missing)
        if missing and strict:
            raise TemplateValidationError(dict.fromkeys(missing))
        if missing:
            logger.debug("template_variables_missing", variables=sorted(set(missing)))
        return rendered.strip()

    def render_template(
        self,
        template: PromptTemplate,
        variables: Mapping[str, Any],
        strict: bool = False,
    ) -> str:
        """Render a PromptTemplate; caller variables override its defaults.

        Raises:
            TemplateValidationError: strict=True and a required or
                referenced variable is missing
        """
        merged = {**template.default_parameters, **variables}
        missing_required = [
            name
            for name in template.required_variables
            if name not in merged or merged[name] is None
        ]
        if missing_required:
            if strict:
                raise TemplateValidationError(missing_required, template.name)
            logger.warning(
                "template_required_variables_missing",
                template=template.name,
                missing=missing_required,
            )
        try:
            return self.render(template.body, merged, strict=strict)
        except TemplateValidationError as e:
            raise TemplateValidationError(e.missing, template.name) from e

    def _render_nodes(
        self,
        nodes: Sequence[_Node],
        scope: Dict[str, Any],
        missing: List[str],
    ) -> str:
        parts: List[str] = []
        for node in nodes:
            if isinstance(node, _Text):
                parts.append(self._substitute(node.text, scope, missing))
            elif isinstance(node, _If):
                condition = is_truthy(resolve(node.name, scope))
                if node.negate:
                    condition = not condition
                branch = node.body if condition else node.else_body
                parts.append(self._render_nodes(branch, scope, missing))
            else:
                collection = resolve(node.collection, scope)
                if collection is MISSING:
                    missing.append(node.collection)
                    continue
                if not isinstance(collection, (list, tuple)):
                    collection = [] if collection is None else [collection]
                total = len(collection)
                for index, item in enumerate(collection):
                    loop_scope = dict(scope)
                    loop_scope[node.item] = item
                    loop_scope["loop"] = {
                        "index": index + 1,
                        "index0": index,
                        "first": index == 0,
                        "last": index == total - 1,
                    }
                    parts.append(self._render_nodes(node.body, loop_scope, missing))
        return "".join(parts)

    @staticmethod
    def _substitute(text: str, scope: Mapping[str, Any], missing: List[str]) -> str:
        def replace(match: "re.Match[str]") -> str:
            value = resolve(match.group(1), scope)
            if value is MISSING:
                missing.append(match.group(1))
            return format_value(value)

        return VARIABLE_PATTERN.sub(replace, text)

    def validate(
        self, template_body: str, variables: Mapping[str, Any]
    ) -> TemplateValidation:
        """Compare the variables a template references with those supplied."""
        referenced = self.extract_variables(template_body)
        missing = [name for name in referenced if name not in variables]
        unused = [name for name in variables if name not in referenced]
        return TemplateValidation(missing=missing, unused=unused)

    def extract_variables(self, template_body: str) -> List[str]:
        """Top-level variable names in order of first appearance.

        Loop variables (and loop.*) are excluded inside their loop body.
        """
        names: Dict[str, None] = {}
        self._collect(_parse(template_body), set(), names)
        return list(names)

    def _collect(
        self,
        nodes: Sequence[_Node],
        local: Set[str],
        names: Dict[str, None],
    ) -> None:
        def add(name: str) -> None:
            head = name.split(".")[0]
            if head not in local:
                names.setdefault(head, None)

        for node in nodes:
            if isinstance(node, _Text):
                for match in VARIABLE_PATTERN.finditer(node.text):
                    add(match.group(1))
            elif isinstance(node, _If):
                add(node.name)
                self._collect(node.body, local, names)
                self._collect(node.else_body, local, names)
            else:
                add(node.collection)
                self._collect(node.body, local | {node.item, "loop"}, names)

    def preview(self, template_body: str) -> str:
        """Render with placeholder values, for inspecting a template."""
        sample = {name: f"[{name}]" for name in self.extract_variables(template_body)}
        return self.render(template_body, sample)
