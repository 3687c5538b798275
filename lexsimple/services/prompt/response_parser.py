"""LLM Response Parser

This module handles:
- Extracting JSON from model output (code fences, embedded objects)
- Repairing common JSON damage (trailing commas, unclosed braces)
- Falling back to the translation-block marker protocol when there is no JSON
- JSON schema validation, anchor validation and validation rules

Degradations are reported as warnings and never raised.
"""

import dataclasses
import json
import re
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import structlog
from jsonschema import Draft7Validator

from lexsimple.models.parsing import (
    ANCHORS_REQUIRED,
    CONFIDENCE_REQUIRED,
    AnchorValidation,
    LlmParsingRequest,
    ParsedLlmResponse,
    response_sections,
)
from lexsimple.observability.metrics import RESPONSE_PARSES
from lexsimple.services.content.processor import (
    ANCHOR_PATTERN,
    BLOCK_PATTERN,
    ContentProcessor,
    anchor_id,
)

logger = structlog.get_logger()

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)
TRAILING_COMMA_PATTERN = re.compile(r",\s*([}\]])")

FALLBACK_WARNING = "Used fallback parsing due to primary parsing failure"
CLOSERS = {"{": "}", "[": "]"}


class LlmResponseParser:
    """Turns raw model output into a ParsedLlmResponse."""

    def __init__(self, content_processor: Optional[ContentProcessor] = None):
        self.content_processor = content_processor or ContentProcessor()

    def parse(self, request: LlmParsingRequest) -> ParsedLlmResponse:
        """Parse and validate one response."""
        warnings: List[str] = []
        errors: List[str] = []
        raw = request.raw_response

        if not raw.strip():
            errors.append("Empty response")
            return self._finish(request, {}, (), warnings, errors, "none")

        data, method = self._extract_data(raw, warnings)
        if data is None:
            errors.append("No JSON object or translation blocks found in response")
            data = {}

        data = self._normalize(data)
        self._normalize_anchors(data)

        if request.schema and data:
            errors.extend(self._validate_schema(data, request.schema))

        validations = self._validate_anchors(data, raw, request.original_anchors, warnings)
        errors.extend(self._apply_rules(request, data, validations))

        return self._finish(request, data, tuple(validations), warnings, errors, method)

    def parse_with_fallback(self, request: LlmParsingRequest) -> ParsedLlmResponse:
        """Parse; if invalid and a schema was used, retry without the schema."""
        result = self.parse(request)
        if result.is_valid or request.schema is None:
            return result

        fallback = self.parse(dataclasses.replace(request, schema=None))
        if not fallback.is_valid:
            return result

        logger.warning(
            "response_parse_fallback_used",
            schema_type=request.schema_type,
            primary_errors=list(result.errors),
        )
        return dataclasses.replace(
            fallback,
            warnings=fallback.warnings + (FALLBACK_WARNING,) + result.errors,
            metadata={**fallback.metadata, "fallback": True},
        )

    def _finish(
        self,
        request: LlmParsingRequest,
        data: Dict[str, Any],
        validations: Tuple[AnchorValidation, ...],
        warnings: List[str],
        errors: List[str],
        method: str,
    ) -> ParsedLlmResponse:
        is_valid = not errors or (not request.strict_validation and bool(data))
        result = ParsedLlmResponse(
            is_valid=is_valid,
            parsed_data=data,
            anchor_validations=validations,
            warnings=tuple(warnings),
            errors=tuple(errors),
            schema_type=request.schema_type,
            raw_response=request.raw_response,
            metadata={
                "parse_method": method,
                "response_length": len(request.raw_response),
                "sections_count": len(response_sections(data)),
                "expected_anchors": len(request.original_anchors),
            },
        )

        if result.is_successful():
            outcome = "partial" if result.has_partial_results() else "success"
        else:
            outcome = "partial" if result.is_valid else "failed"
        RESPONSE_PARSES.labels(outcome=outcome).inc()
        logger.debug(
            "response_parsed",
            schema_type=request.schema_type,
            parse_method=method,
            outcome=outcome,
            warnings=len(warnings),
            errors=len(errors),
        )
        return result

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def _extract_data(
        self, raw: str, warnings: List[str]
    ) -> Tuple[Optional[Dict[str, Any]], str]:
        data = self.extract_json(raw, warnings)
        if data is not None:
            return data, "json"

        if BLOCK_PATTERN.search(raw):
            warnings.append("No JSON found; parsed translation-block markers instead")
            return self._data_from_markers(raw), "markers"
        return None, "none"

    def extract_json(self, raw: str, warnings: List[str]) -> Optional[Dict[str, Any]]:
        """Find the JSON object in a response, repairing it if needed."""
        candidates: List[str] = []
        fence = CODE_FENCE_PATTERN.search(raw)
        if fence:
            candidates.append(fence.group(1).strip())
        candidates.append(raw.strip())
        embedded = OBJECT_PATTERN.search(raw)
        if embedded:
            candidates.append(embedded.group(0))

        for candidate in candidates:
            value = self._loads(candidate)
            if value is not None:
                return value

        start = raw.find("{")
        if start == -1:
            return None
        repaired = self.repair_json(raw[start:])
        value = self._loads(repaired)
        if value is not None:
            warnings.append("Repaired malformed JSON in response")
        return value

    @staticmethod
    def _loads(text: str) -> Optional[Dict[str, Any]]:
        try:
            value = json.loads(text)
        except json.JSONDecodeError:
            return None
        if isinstance(value, dict):
            return value
        if isinstance(value, list):
            return {"items": value}
        return None

    @staticmethod
    def repair_json(text: str) -> str:
        """Drop trailing commas and close unbalanced strings and brackets."""
        text = TRAILING_COMMA_PATTERN.sub(r"\1", text.strip().rstrip("`").strip())
        stack: List[str] = []
        in_string = False
        escaped = False
        for char in text:
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char in CLOSERS:
                stack.append(CLOSERS[char])
            elif char in ("}", "]") and stack and stack[-1] == char:
                stack.pop()

        if in_string:
            text += '"'
        text = text.rstrip().rstrip(",")
        return text + "".join(reversed(stack))

    def _data_from_markers(self, raw: str) -> Dict[str, Any]:
        parsed = self.content_processor.parse_content(raw)
        return {
            "sections": [
                {
                    "id": section.id,
                    "anchor": section.anchor,
                    "title": section.title,
                    "content": section.main_translation(),
                    "translations": list(section.translated_content),
                    "risks": [risk.to_dict() for risk in section.risks],
                    "type": section.block_type or "translation",
                }
                for section in parsed.sections
            ]
        }

    def _normalize(self, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        if isinstance(value, list):
            return [self._normalize(item) for item in value]
        if isinstance(value, dict):
            normalized = {key: self._normalize(item) for key, item in value.items()}
            confidence = normalized.get("confidence")
            if isinstance(confidence, str):
                try:
                    normalized["confidence"] = float(confidence)
                except ValueError:
                    pass
            return normalized
        return value

    @staticmethod
    def _normalize_anchors(data: Dict[str, Any]) -> None:
        """Rewrite marker-form section anchors to bare ids in place."""
        for section in response_sections(data):
            anchor = section.get("anchor")
            if isinstance(anchor, str):
                section["anchor"] = anchor_id(anchor)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_schema(data: Dict[str, Any], schema: Dict[str, Any]) -> List[str]:
        validator = Draft7Validator(schema)
        messages = []
        for error in sorted(validator.iter_errors(data), key=lambda e: list(e.path)):
            location = ".".join(str(part) for part in error.path) or "<root>"
            messages.append(f"Schema validation failed at {location}: {error.message}")
        return messages

    @staticmethod
    def _response_anchors(data: Dict[str, Any], raw: str) -> List[str]:
        anchors: List[str] = []
        for section in response_sections(data):
            anchor = section.get("anchor")
            if isinstance(anchor, str) and anchor:
                anchors.append(anchor_id(anchor))
        anchors.extend(ANCHOR_PATTERN.findall(raw))
        return list(dict.fromkeys(anchors))

    def _validate_anchors(
        self,
        data: Dict[str, Any],
        raw: str,
        original_anchors: Sequence[str],
        warnings: List[str],
    ) -> List[AnchorValidation]:
        found = self._response_anchors(data, raw)
        found_set: Set[str] = set(found)
        original = list(dict.fromkeys(anchor_id(anchor) for anchor in original_anchors))
        expected: Set[str] = set(original)
        validations: List[AnchorValidation] = []

        for anchor in original:
            if anchor in found_set:
                validations.append(AnchorValidation(anchor, True, True))
            else:
                validations.append(
                    AnchorValidation(anchor, False, False, "Anchor not found in response")
                )
                warnings.append(f"Anchor not found in response: {anchor}")

        if expected:
            for anchor in found:
                if anchor not in expected:
                    validations.append(
                        AnchorValidation(anchor, False, True, "Unexpected anchor in response")
                    )
                    warnings.append(f"Unexpected anchor in response: {anchor}")
        return validations

    @staticmethod
    def _apply_rules(
        request: LlmParsingRequest,
        data: Dict[str, Any],
        validations: Sequence[AnchorValidation],
    ) -> List[str]:
        errors = []
        if ANCHORS_REQUIRED in request.validation_rules and request.original_anchors:
            if not any(v.is_valid for v in validations):
                errors.append("No expected anchors found in response")
        if CONFIDENCE_REQUIRED in request.validation_rules:
            confidence = data.get("confidence")
            if not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
                errors.append("Missing numeric confidence in response")
            elif not 0.0 <= confidence <= 1.0:
                errors.append(f"Confidence out of range: {confidence}")
        return errors
