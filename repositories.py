"""
Per-collection data access.

Each repository wraps one MongoDB collection and returns plain documents
(``_id`` still an ObjectId); routes serialize them on the way out.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import BulkWriteError, DuplicateKeyError

from database import create_document, get_documents, to_object_id
from errors import ConflictError, NotFoundError, ValidationError
from schemas import CLASS_TEACHER, COLLECTIONS, DEFAULT_CLASSES, Announcement, SchoolClass, Student, Teacher

CLASS_TEACHER_INDEX = "one_class_teacher_per_class"


class Repository:
    model = None
    label = "Document"

    def __init__(self, db: Database):
        self.db = db
        self.collection_name = COLLECTIONS[self.model]
        self.collection = db[self.collection_name]

    def list_all(self) -> List[dict]:
        return get_documents(self.db, self.collection_name)

    def get(self, doc_id) -> dict:
        oid = to_object_id(doc_id)
        doc = self.collection.find_one({"_id": oid}) if oid else None
        if doc is None:
            raise NotFoundError(f"{self.label} not found")
        return doc

    def create(self, data) -> dict:
        return create_document(self.db, self.collection_name, data)

    def update(self, doc_id, changes: dict) -> dict:
        oid = to_object_id(doc_id)
        doc = None
        if oid:
            fields = dict(changes)
            fields["updated_at"] = datetime.now(timezone.utc)
            doc = self.collection.find_one_and_update(
                {"_id": oid}, {"$set": fields}, return_document=ReturnDocument.AFTER
            )
        if doc is None:
            raise NotFoundError(f"{self.label} not found")
        return doc

    def delete(self, doc_id) -> None:
        # Unknown ids are not an error
        oid = to_object_id(doc_id)
        if oid:
            self.collection.delete_one({"_id": oid})


class StudentRepository(Repository):
    model = Student
    label = "Student"

    def append_payment(self, doc_id, payment: dict) -> dict:
        """Record a payment. fees.due is left as it is."""
        oid = to_object_id(doc_id)
        doc = None
        if oid:
            doc = self.collection.find_one_and_update(
                {"_id": oid},
                {
                    "$push": {"fees.payments": payment},
                    "$set": {"updated_at": datetime.now(timezone.utc)},
                },
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            raise NotFoundError(f"{self.label} not found")
        return doc


class TeacherRepository(Repository):
    model = Teacher
    label = "Teacher"

    def ensure_indexes(self) -> None:
        # The store rejects a second class teacher for the same class even
        # when two requests pass the application check at the same time.
        self.collection.create_index(
            [("classTeacherClass", ASCENDING)],
            name=CLASS_TEACHER_INDEX,
            unique=True,
            partialFilterExpression={"role": CLASS_TEACHER, "classTeacherClass": {"$gt": ""}},
        )

    def find_class_teacher(self, klass: str, exclude_id=None) -> Optional[dict]:
        query = {"role": CLASS_TEACHER, "classTeacherClass": klass}
        if exclude_id is not None:
            query["_id"] = {"$ne": to_object_id(exclude_id)}
        return self.collection.find_one(query)

    def with_email(self) -> List[dict]:
        return get_documents(self.db, self.collection_name, {"email": {"$nin": ["", None]}})

    def create(self, data) -> dict:
        try:
            return super().create(data)
        except DuplicateKeyError:
            raise self._conflict(data if isinstance(data, dict) else data.model_dump())

    def update(self, doc_id, changes: dict) -> dict:
        try:
            return super().update(doc_id, changes)
        except DuplicateKeyError:
            raise self._conflict(changes, exclude_id=doc_id)

    def _conflict(self, fields: dict, exclude_id=None) -> ConflictError:
        klass = fields.get("classTeacherClass", "")
        holder = self.find_class_teacher(klass, exclude_id=exclude_id)
        name = holder["name"] if holder else "another teacher"
        return ConflictError(f'Class "{klass}" already has a class teacher ({name}).')


class ClassRepository(Repository):
    model = SchoolClass
    label = "Class"

    def ensure_indexes(self) -> None:
        self.collection.create_index([("name", ASCENDING)], name="unique_class_name", unique=True)

    def insert_defaults_if_empty(self) -> List[dict]:
        if self.collection.count_documents({}) > 0:
            raise ValidationError("Classes already initialized")
        now = datetime.now(timezone.utc)
        docs = []
        for name in DEFAULT_CLASSES:
            doc = SchoolClass(name=name).model_dump()
            doc["created_at"] = now
            doc["updated_at"] = now
            docs.append(doc)
        try:
            self.collection.insert_many(docs)
        except BulkWriteError:
            raise ValidationError("Classes already initialized")
        return docs


class AnnouncementRepository(Repository):
    model = Announcement
    label = "Announcement"

    def list_newest_first(self) -> List[dict]:
        return get_documents(self.db, self.collection_name, sort=[("created_at", DESCENDING)])
