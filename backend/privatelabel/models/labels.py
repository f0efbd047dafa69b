from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

# Ordered approval pipeline (must match lifecycle_service)
LABEL_STAGES = (
    "design_in_progress",
    "awaiting_store_approval",
    "store_approved",
    "submitted_to_olcc",
    "olcc_approved",
    "print_order_submitted",
    "ready_for_production",
)
INITIAL_LABEL_STAGE = LABEL_STAGES[0]
TERMINAL_LABEL_STAGE = LABEL_STAGES[-1]


class Label(db.Model):
    """
    One flavor/product-type design owned by a private-label client.

    product_type is a free-text key into the product registry; it is
    validated when a price is resolved, not by a constraint.

    stage_history is append-only. The first entry is written by the
    constructor so it always mirrors the initial current_stage.
    """
    __tablename__ = "labels"
    __table_args__ = (
        db.Index("ix_labels_client_stage", "client_id", "current_stage"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("private_label_clients.id"), nullable=False, index=True)
    flavor_name = db.Column(db.String(200), nullable=False)
    product_type = db.Column(db.String(120), nullable=False, index=True)
    special_instructions = db.Column(db.Text, nullable=True)
    current_stage = db.Column(db.String(32), nullable=False, default=INITIAL_LABEL_STAGE, index=True)

    # Store approval link; only the SHA-256 of the token is stored
    approval_token_hash = db.Column(db.String(64), nullable=True, unique=True)
    approval_token_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    client = db.relationship("PrivateLabelClient", back_populates="labels")
    stage_history = db.relationship(
        "LabelStageEntry",
        back_populates="label",
        cascade="all, delete-orphan",
        order_by="LabelStageEntry.id",
    )
    images = db.relationship(
        "LabelImage",
        back_populates="label",
        cascade="all, delete-orphan",
        order_by="LabelImage.position",
    )

    def __init__(self, *, created_by=None, **kwargs):
        super().__init__(**kwargs)
        if self.current_stage is None:
            self.current_stage = INITIAL_LABEL_STAGE
        self.record_stage(self.current_stage, actor=created_by, notes="Label created")

    def record_stage(self, stage: str, *, actor=None, notes: str | None = None) -> "LabelStageEntry":
        """Set current_stage and append the matching history entry."""
        self.current_stage = stage
        entry = LabelStageEntry(
            stage=stage,
            changed_by_type=actor.kind if actor else None,
            changed_by_id=actor.id if actor else None,
            changed_at=utcnow(),
            notes=notes,
        )
        self.stage_history.append(entry)
        return entry

    def to_dict(self, *, include_history: bool = True, actor_names: dict | None = None):
        data = {
            "id": self.id,
            "client_id": self.client_id,
            "flavor_name": self.flavor_name,
            "product_type": self.product_type,
            "special_instructions": self.special_instructions,
            "current_stage": self.current_stage,
            "label_images": [img.to_dict() for img in self.images],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_history:
            data["stage_history"] = [e.to_dict(actor_names=actor_names) for e in self.stage_history]
        return data


class LabelStageEntry(db.Model):
    """
    Append-only stage audit entry.

    changed_by is a tagged actor reference: (changed_by_type, changed_by_id)
    with type "admin" or "rep", or both NULL for system/store actions.
    """
    __tablename__ = "label_stage_history"
    __table_args__ = (
        db.CheckConstraint(
            "(changed_by_type IS NULL AND changed_by_id IS NULL) OR "
            "(changed_by_type IN ('admin', 'rep') AND changed_by_id IS NOT NULL)",
            name="ck_label_stage_history_actor",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    label_id = db.Column(db.Integer, db.ForeignKey("labels.id", ondelete="CASCADE"), nullable=False, index=True)
    stage = db.Column(db.String(32), nullable=False)
    changed_by_type = db.Column(db.String(8), nullable=True)
    changed_by_id = db.Column(db.Integer, nullable=True)
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    notes = db.Column(db.Text, nullable=True)

    label = db.relationship("Label", back_populates="stage_history")

    def to_dict(self, *, actor_names: dict | None = None):
        changed_by = None
        if self.changed_by_type:
            changed_by = {"kind": self.changed_by_type, "id": self.changed_by_id}
            resolved = (actor_names or {}).get((self.changed_by_type, self.changed_by_id))
            if resolved:
                changed_by["name"] = resolved
        return {
            "stage": self.stage,
            "changed_by": changed_by,
            "changed_at": to_utc_z(self.changed_at),
            "notes": self.notes,
        }


class LabelImage(db.Model):
    """Uploaded artwork metadata as returned by the media store."""
    __tablename__ = "label_images"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    label_id = db.Column(db.Integer, db.ForeignKey("labels.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    url = db.Column(db.String(500), nullable=False)
    secure_url = db.Column(db.String(500), nullable=False)
    public_id = db.Column(db.String(255), nullable=False)
    format = db.Column(db.String(16), nullable=True)
    bytes = db.Column(db.Integer, nullable=True)
    original_filename = db.Column(db.String(255), nullable=True)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    label = db.relationship("Label", back_populates="images")

    def to_dict(self):
        return {
            "url": self.url,
            "secure_url": self.secure_url,
            "public_id": self.public_id,
            "format": self.format,
            "bytes": self.bytes,
            "original_filename": self.original_filename,
            "uploaded_at": to_utc_z(self.uploaded_at),
        }
