"""
Request validation and business rules.

Presence checks look for absent values (missing key, null, empty string);
zero is a value. Partial updates only apply fields that arrive with the
right primitive type and silently ignore the rest.
"""

from typing import Any, Dict, Iterable, List

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from errors import ConflictError, ValidationError
from schemas import CLASS_TEACHER, Payment, SchoolClass, Student, Teacher, to_document

TEXT = "text"
NUMBER = "number"

STUDENT_PATCH = {"name": TEXT, "age": NUMBER, "class": TEXT, "feesDue": NUMBER}
TEACHER_PATCH = {"name": TEXT, "subject": TEXT, "role": TEXT, "email": TEXT}
CLASS_PATCH = {"teacher": TEXT, "leader": TEXT}

_STORED_FIELDS = ("_id", "created_at", "updated_at")


def is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def missing_fields(payload: Dict[str, Any], fields: Iterable[str]) -> List[str]:
    return [f for f in fields if is_missing(payload.get(f))]


def require(payload: Dict[str, Any], fields: List[str]) -> None:
    """Raise naming the missing fields, e.g. "age and feesDue are required"."""
    missing = missing_fields(payload, fields)
    if not missing:
        return
    if len(missing) == 1:
        raise ValidationError(f"{missing[0]} is required")
    joined = ", ".join(missing[:-1]) + " and " + missing[-1]
    raise ValidationError(f"{joined} are required")


def _has_type(value: Any, kind: str) -> bool:
    if kind == TEXT:
        return isinstance(value, str)
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def pick_typed(payload: Dict[str, Any], allowed: Dict[str, str]) -> Dict[str, Any]:
    return {k: payload[k] for k, kind in allowed.items() if k in payload and _has_type(payload[k], kind)}


def require_numbers(payload: Dict[str, Any], fields: List[str]) -> None:
    """JSON booleans are not numbers, even where pydantic would coerce them."""
    for field in fields:
        if not _has_type(payload[field], NUMBER):
            raise ValidationError(f"{field} must be a number")


def validated(model_cls, data: Dict[str, Any]) -> BaseModel:
    """Build a model, turning pydantic failures into a 400 naming the fields."""
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as exc:
        problems = []
        for err in exc.errors():
            field = ".".join(str(p) for p in err["loc"]) or "body"
            problems.append(f"{field}: {err['msg']}")
        raise ValidationError("Invalid " + "; ".join(problems))


def _strip_stored(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in doc.items() if k not in _STORED_FIELDS}


# ----- students -----

def new_student(payload: Dict[str, Any]) -> dict:
    require(payload, ["name", "age", "class", "feesDue"])
    require_numbers(payload, ["age", "feesDue"])
    student = validated(Student, {
        "name": payload["name"],
        "age": payload["age"],
        "class": payload["class"],
        "fees": {"due": payload["feesDue"], "payments": []},
    })
    return to_document(student)


def student_changes(current: dict, payload: Dict[str, Any]) -> dict:
    picked = pick_typed(payload, STUDENT_PATCH)
    changes = {k: v for k, v in picked.items() if k != "feesDue"}
    if "feesDue" in picked:
        changes["fees.due"] = picked["feesDue"]

    merged = _strip_stored(current)
    merged.update({k: v for k, v in changes.items() if k != "fees.due"})
    merged["fees"] = dict(current.get("fees") or {})
    if "fees.due" in changes:
        merged["fees"]["due"] = changes["fees.due"]
    stored = to_document(validated(Student, merged))
    return {k: stored["fees"]["due"] if k == "fees.due" else stored[k] for k in changes}


def new_payment(payload: Dict[str, Any]) -> dict:
    require(payload, ["amount", "date"])
    require_numbers(payload, ["amount"])
    return validated(Payment, {"amount": payload["amount"], "date": payload["date"]}).model_dump()


# ----- teachers -----

def check_class_teacher(teachers, role: str, klass: str, exclude_id=None) -> None:
    """Reject a second class teacher for the same class."""
    if role != CLASS_TEACHER or not klass:
        return
    existing = teachers.find_class_teacher(klass, exclude_id=exclude_id)
    if existing:
        raise ConflictError(f'Class "{klass}" already has a class teacher ({existing["name"]}).')


def new_teacher(teachers, payload: Dict[str, Any]) -> dict:
    require(payload, ["name", "subject", "role", "email"])
    role = payload["role"]
    klass = payload.get("classTeacherClass") if isinstance(payload.get("classTeacherClass"), str) else ""
    if role != CLASS_TEACHER:
        klass = ""
    check_class_teacher(teachers, role, klass)
    teacher = validated(Teacher, {
        "name": payload["name"],
        "subject": payload["subject"],
        "role": role,
        "email": payload["email"],
        "classTeacherClass": klass,
    })
    return to_document(teacher)


def teacher_changes(teachers, current: dict, payload: Dict[str, Any]) -> dict:
    changes = pick_typed(payload, TEACHER_PATCH)
    role = changes.get("role", current.get("role"))

    if role == CLASS_TEACHER:
        supplied = payload.get("classTeacherClass")
        klass = supplied if isinstance(supplied, str) else current.get("classTeacherClass", "")
        check_class_teacher(teachers, role, klass, exclude_id=current["_id"])
    else:
        klass = ""
    changes["classTeacherClass"] = klass

    merged = _strip_stored(current)
    merged.update(changes)
    stored = to_document(validated(Teacher, merged))
    return {k: stored[k] for k in changes}


# ----- classes -----

def class_changes(current: dict, payload: Dict[str, Any]) -> dict:
    changes = pick_typed(payload, CLASS_PATCH)
    merged = _strip_stored(current)
    merged.update(changes)
    stored = to_document(validated(SchoolClass, merged))
    return {k: stored[k] for k in changes}
