"""
Request validators and their schemas.

A ``ValidatorSchema`` pairs a named request validator with structural rules
for either the query string or the JSON body. Rules are a closed set:
required fields, a primitive type (string, number, array, enum) and a minimum
length for arrays. Schemas are immutable and shared by reference between the
methods that use them.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.surface.errors import ValidationRejected


class ValidationTarget(str, Enum):
    BODY = "body"
    QUERY_PARAMS = "query_params"


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    ARRAY = "array"
    ENUM = "enum"


class FieldRule(BaseModel):
    """Constraint on a single query parameter or body property."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    type: FieldType = FieldType.STRING
    required: bool = False
    enum_values: Tuple[str, ...] = ()
    min_items: Optional[int] = Field(default=None, ge=0)
    item_type: Optional[FieldType] = None

    @model_validator(mode="after")
    def validate_rule_shape(self):
        if self.type == FieldType.ENUM and not self.enum_values:
            raise ValueError(f"Enum field '{self.name}' needs at least one value")
        if self.type != FieldType.ENUM and self.enum_values:
            raise ValueError(f"Field '{self.name}' lists enum values but is of type {self.type.value}")
        if self.type != FieldType.ARRAY and (self.min_items is not None or self.item_type is not None):
            raise ValueError(f"Field '{self.name}' has array constraints but is of type {self.type.value}")
        if self.item_type in (FieldType.ARRAY, FieldType.ENUM):
            raise ValueError(f"Array field '{self.name}' items must be strings or numbers")
        return self

    def to_json_schema(self) -> Dict[str, Any]:
        if self.type == FieldType.ENUM:
            return {"type": "string", "enum": list(self.enum_values)}
        schema: Dict[str, Any] = {"type": self.type.value}
        if self.type == FieldType.ARRAY:
            if self.min_items is not None:
                schema["minItems"] = self.min_items
            if self.item_type is not None:
                schema["items"] = {"type": self.item_type.value}
        return schema

    def check(self, value: Any) -> List[str]:
        """Violations of this rule by a present value."""
        if self.type == FieldType.ENUM:
            if not isinstance(value, str) or value not in self.enum_values:
                return [f"{self.name}: must be one of {list(self.enum_values)}"]
            return []

        if not _matches_type(value, self.type):
            return [f"{self.name}: expected type {self.type.value}"]

        violations = []
        if self.type == FieldType.ARRAY:
            if self.min_items is not None and len(value) < self.min_items:
                violations.append(f"{self.name}: expected at least {self.min_items} item(s)")
            if self.item_type is not None:
                for index, item in enumerate(value):
                    if not _matches_type(item, self.item_type):
                        violations.append(f"{self.name}[{index}]: expected type {self.item_type.value}")
        return violations


def _matches_type(value: Any, field_type: FieldType) -> bool:
    if field_type == FieldType.STRING:
        return isinstance(value, str)
    if field_type == FieldType.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if field_type == FieldType.ARRAY:
        return isinstance(value, list)
    return False


class ValidatorSchema(BaseModel):
    """Named request validator with the rules it enforces."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    target: ValidationTarget
    rules: Tuple[FieldRule, ...]
    body_model_name: Optional[str] = None

    @model_validator(mode="after")
    def validate_target_rules(self):
        names = [rule.name for rule in self.rules]
        if len(names) != len(set(names)):
            raise ValueError(f"Validator '{self.name}' declares a field twice")
        if self.target == ValidationTarget.QUERY_PARAMS:
            if self.body_model_name is not None:
                raise ValueError(f"Query validator '{self.name}' cannot carry a body model")
            if any(rule.type != FieldType.STRING for rule in self.rules):
                raise ValueError(f"Query validator '{self.name}' only supports string parameters")
        elif self.body_model_name is None:
            raise ValueError(f"Body validator '{self.name}' needs a model name")
        return self

    @property
    def required_fields(self) -> List[str]:
        return [rule.name for rule in self.rules if rule.required]

    def request_parameters(self) -> Dict[str, bool]:
        """Query parameter declarations keyed the way API Gateway expects."""
        if self.target != ValidationTarget.QUERY_PARAMS:
            return {}
        return query_parameter_declarations({rule.name: rule.required for rule in self.rules})

    def to_json_schema(self) -> Dict[str, Any]:
        """JSON Schema (draft 4) for body validators."""
        schema: Dict[str, Any] = {
            "type": "object",
            "properties": {rule.name: rule.to_json_schema() for rule in self.rules},
        }
        if self.required_fields:
            schema["required"] = self.required_fields
        return schema

    def violations(self, query: Optional[Mapping[str, str]] = None, body: Any = None) -> List[str]:
        """All rule violations for a request, empty when it passes."""
        if self.target == ValidationTarget.QUERY_PARAMS:
            query = query or {}
            return [
                f"{name}: required" for name in self.required_fields if not (query.get(name) or "").strip()
            ]

        if isinstance(body, (str, bytes)):
            try:
                body = json.loads(body)
            except ValueError:
                return ["body: malformed JSON"]
        if not isinstance(body, dict):
            return ["body: expected type object"]

        violations = []
        for rule in self.rules:
            if rule.name not in body:
                if rule.required:
                    violations.append(f"{rule.name}: required")
                continue
            violations.extend(rule.check(body[rule.name]))
        return violations

    def validate_request(self, query: Optional[Mapping[str, str]] = None, body: Any = None) -> None:
        """
        Enforce this validator against a request.

        Raises:
            ValidationRejected: If any rule is violated.
        """
        violations = self.violations(query=query, body=body)
        if not violations:
            return
        if self.target == ValidationTarget.QUERY_PARAMS:
            missing = [v.split(":", 1)[0] for v in violations]
            message = f"Missing required request parameters: [{', '.join(missing)}]"
        else:
            message = "Invalid request body"
        raise ValidationRejected(message, self.name, violations)


def query_parameter_declarations(parameters: Mapping[str, bool]) -> Dict[str, bool]:
    """Map ``{name: required}`` to ``method.request.querystring.<name>`` keys."""
    return {f"method.request.querystring.{name}": required for name, required in parameters.items()}


PAYMENT_TYPES = ("CASH", "DEBIT_CARD", "CREDIT_CARD")

PRODUCT_SCHEMA = ValidatorSchema(
    name="ProductRequestValidator",
    body_model_name="ProductModel",
    target=ValidationTarget.BODY,
    rules=(
        FieldRule(name="productName", type=FieldType.STRING, required=True),
        FieldRule(name="code", type=FieldType.STRING, required=True),
        FieldRule(name="price", type=FieldType.NUMBER),
        FieldRule(name="model", type=FieldType.STRING),
        FieldRule(name="productUrl", type=FieldType.STRING),
    ),
)

ORDER_SCHEMA = ValidatorSchema(
    name="OrderRequestValidator",
    body_model_name="OrderModel",
    target=ValidationTarget.BODY,
    rules=(
        FieldRule(
            name="productIds",
            type=FieldType.ARRAY,
            required=True,
            min_items=1,
            item_type=FieldType.STRING,
        ),
        FieldRule(name="payment", type=FieldType.ENUM, required=True, enum_values=PAYMENT_TYPES),
    ),
)

ORDER_DELETION_SCHEMA = ValidatorSchema(
    name="OrderDeletionValidator",
    target=ValidationTarget.QUERY_PARAMS,
    rules=(
        FieldRule(name="email", required=True),
        FieldRule(name="orderId", required=True),
    ),
)

ORDER_EVENTS_FETCH_SCHEMA = ValidatorSchema(
    name="OrderEventsFetchValidator",
    target=ValidationTarget.QUERY_PARAMS,
    rules=(
        FieldRule(name="email", required=True),
        FieldRule(name="eventType", required=False),
    ),
)
