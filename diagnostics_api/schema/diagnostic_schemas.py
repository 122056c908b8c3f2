"""Schemas for persisted diagnostic logs."""

from marshmallow import Schema, fields, validate

from diagnostics_api.models.diagnostics.enums import StepKind, StepStatus, TargetType
from diagnostics_api.models.diagnostics.jobs import MAX_TARGET_ID_LENGTH
from diagnostics_api.utils.timezone import to_utc_isoformat


class DiagnosticStepSchema(Schema):
    """Schema for one serialized DiagnosticStep."""

    kind = fields.String(required=True, validate=validate.OneOf([k.value for k in StepKind]))
    step_name = fields.String(required=True)
    status = fields.String(required=True, validate=validate.OneOf([s.value for s in StepStatus]))
    summary = fields.String(required=True)
    details = fields.Dict(required=True)


class DiagnosticLogSchema(Schema):
    """Schema for the DiagnosticLog model."""

    id = fields.Integer(dump_only=True)
    target_id = fields.String(required=True, validate=validate.Length(min=1, max=MAX_TARGET_ID_LENGTH))
    target_type = fields.Enum(TargetType, by_value=True, allow_none=True)

    # Steps in execution order
    steps = fields.List(fields.Nested(DiagnosticStepSchema), required=True)
    final_conclusion = fields.String(required=True)

    # Metadata
    job_id = fields.String(allow_none=True)
    trigger_source = fields.String(allow_none=True)
    created_at = fields.Method("get_created_at", dump_only=True)

    def get_created_at(self, obj):
        return to_utc_isoformat(obj.created_at)


# Schema instances
diagnostic_log_schema = DiagnosticLogSchema()
diagnostic_logs_schema = DiagnosticLogSchema(many=True)
