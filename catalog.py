"""
Recall Run Engine v1.0: Catalog (Data Provider)
Validates the static device/event catalog once and serves it by id.
Lazy singleton for the bundled content: loads once, cached for the process.

The provider fails closed: malformed entries are dropped at load time and
lookups return None / empty lists rather than raising.
"""

import ast
import logging
import operator

from pydantic import ValidationError

from models import Device, GameEvent, ShieldDeflection
from schemas import DeviceModel, EventModel, format_errors

logger = logging.getLogger("recall.catalog")


# ─────────────────────────────────────────────────────
# TRIGGER CONDITIONS
# Small expression language over month, budget, doom, tagCount, activeTags.
# ─────────────────────────────────────────────────────

_COMPARE_OPS = {
    ast.Gt: operator.gt, ast.GtE: operator.ge,
    ast.Lt: operator.lt, ast.LtE: operator.le,
    ast.Eq: operator.eq, ast.NotEq: operator.ne,
    ast.In: lambda a, b: a in b, ast.NotIn: lambda a, b: a not in b,
}

_BIN_OPS = {
    ast.Add: operator.add, ast.Sub: operator.sub,
    ast.Mult: operator.mul, ast.Div: operator.truediv,
}


def _includes(container, value) -> bool:
    if isinstance(container, (list, tuple, str)):
        return value in container
    return False


_FUNCTIONS = {"includes": _includes}


def _eval_node(node, ctx: dict):
    if isinstance(node, ast.Expression):
        return _eval_node(node.body, ctx)
    if isinstance(node, ast.BoolOp):
        values = (_eval_node(v, ctx) for v in node.values)
        if isinstance(node.op, ast.And):
            return all(values)
        return any(values)
    if isinstance(node, ast.UnaryOp):
        operand = _eval_node(node.operand, ctx)
        if isinstance(node.op, ast.Not):
            return not operand
        if isinstance(node.op, ast.USub):
            return -operand
        raise ValueError(f"unsupported unary operator {type(node.op).__name__}")
    if isinstance(node, ast.Compare):
        left = _eval_node(node.left, ctx)
        for op, comparator in zip(node.ops, node.comparators):
            fn = _COMPARE_OPS.get(type(op))
            if fn is None:
                raise ValueError(f"unsupported comparison {type(op).__name__}")
            right = _eval_node(comparator, ctx)
            if not fn(left, right):
                return False
            left = right
        return True
    if isinstance(node, ast.BinOp):
        fn = _BIN_OPS.get(type(node.op))
        if fn is None:
            raise ValueError(f"unsupported operator {type(node.op).__name__}")
        return fn(_eval_node(node.left, ctx), _eval_node(node.right, ctx))
    if isinstance(node, ast.Name):
        if node.id in ("true", "True"):
            return True
        if node.id in ("false", "False"):
            return False
        if node.id not in ctx:
            raise ValueError(f"unknown variable '{node.id}'")
        return ctx[node.id]
    if isinstance(node, ast.Constant):
        if isinstance(node.value, (int, float, str, bool)):
            return node.value
        raise ValueError(f"unsupported constant {node.value!r}")
    if isinstance(node, (ast.List, ast.Tuple)):
        return [_eval_node(e, ctx) for e in node.elts]
    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id not in _FUNCTIONS or node.keywords:
            raise ValueError("unsupported function call")
        return _FUNCTIONS[node.func.id](*[_eval_node(a, ctx) for a in node.args])
    raise ValueError(f"unsupported expression {type(node).__name__}")


def evaluate_condition(condition, ctx: dict) -> bool:
    """
    Evaluate a trigger condition. Empty means always eligible.
    Any parse or evaluation error makes the event ineligible.
    """
    if not condition or not condition.strip():
        return True
    expr = condition.replace("&&", " and ").replace("||", " or ")
    try:
        tree = ast.parse(expr.strip(), mode="eval")
        return bool(_eval_node(tree, ctx))
    except (SyntaxError, ValueError, TypeError, ZeroDivisionError) as e:
        logger.warning(f"Condition '{condition}' failed to evaluate: {e}")
        return False


def condition_context(month: float, budget: float, doom: float, tags) -> dict:
    tags = list(tags)
    return {"month": month, "budget": budget, "doom": doom,
            "tagCount": len(tags), "activeTags": tags}


# ─────────────────────────────────────────────────────
# CATALOG
# ─────────────────────────────────────────────────────

class Catalog:
    """Validated devices and events, indexed by id."""

    def __init__(self, devices: list, events: list):
        self._devices = tuple(devices)
        self._events = tuple(events)
        self._device_map = {d.id: d for d in self._devices}
        self._event_map = {e.id: e for e in self._events}

    @classmethod
    def from_raw(cls, devices_data, events_data) -> "Catalog":
        """Validate raw wire-format entries; invalid ones are logged and skipped."""
        devices = []
        for i, raw in enumerate(devices_data or []):
            try:
                model = DeviceModel.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Invalid device at index {i}: {format_errors(e)}")
                continue
            devices.append(Device.from_dict(model.model_dump(by_alias=True)))

        events = []
        for i, raw in enumerate(events_data or []):
            try:
                model = EventModel.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Invalid event at index {i}: {format_errors(e)}")
                continue
            events.append(GameEvent.from_dict(model.model_dump(by_alias=True)))

        logger.info(f"Catalog: loaded {len(devices)} devices, {len(events)} events")
        return cls(devices, events)

    # ── Lookup helpers ────────────────────────────────

    def get_devices(self) -> tuple:
        return self._devices

    def get_device(self, device_id: str):
        return self._device_map.get(device_id)

    def get_events(self) -> tuple:
        return self._events

    def get_event_by_id(self, event_id: str):
        return self._event_map.get(event_id)

    # ── Eligibility ───────────────────────────────────

    def get_eligible_events(self, tags, category=None, *, month: float = 0,
                            budget: float = 0, doom: float = 0,
                            history=()) -> tuple:
        """
        Events whose eligibility fields match the current run.

        Checks, in order: non-repeatable events already resolved, trigger
        condition, required tags (all), device category, blocking tags (any).
        An event stopped only by a blocking tag yields a ShieldDeflection.
        Returns (eligible, deflections).
        """
        active = list(tags)
        seen = {h.event_id for h in history}
        ctx = condition_context(month, budget, doom, active)

        eligible = []
        deflections = []
        for event in self._events:
            if not event.repeatable and event.id in seen:
                continue
            if not evaluate_condition(event.trigger_condition, ctx):
                continue
            if event.required_tags and not all(t in active for t in event.required_tags):
                continue
            if event.archetypes and category not in event.archetypes:
                continue
            blocking = next((t for t in event.blocked_by_tags if t in active), None)
            if blocking:
                deflections.append(ShieldDeflection(month=month, event_id=event.id,
                                                    blocked_by_tag=blocking))
                continue
            eligible.append(event)
        return eligible, deflections


# ─────────────────────────────────────────────────────
# PUBLIC API
# ─────────────────────────────────────────────────────

_catalog = None


def load_default_catalog() -> Catalog:
    """Return cached Catalog over the bundled content, building it on first call."""
    global _catalog
    if _catalog is None:
        from catalog_data import DEVICES, EVENTS
        _catalog = Catalog.from_raw(DEVICES, EVENTS)
    return _catalog


def reset_default_catalog():
    """Reset cached catalog (for testing or if content changes)."""
    global _catalog
    _catalog = None
