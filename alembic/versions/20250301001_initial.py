"""Initial FotoDerma schema."""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20250301001"
down_revision = None
branch_labels = None
depends_on = None

JSON_DOCUMENT = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "doctor_profiles",
        sa.Column("id", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.String(length=32), nullable=False),
        sa.Column("updated_at", sa.String(length=32), nullable=False),
        sa.Column("created_seq", sa.BigInteger(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("picture", sa.String(length=2048), nullable=False, server_default=""),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="doctor"),
        sa.Column("preferences", JSON_DOCUMENT, nullable=False),
        sa.Column("last_login", sa.String(length=32), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_doctor_profiles"),
    )
    op.create_index(
        "ix_doctor_profiles_created_at", "doctor_profiles", ["created_at"], unique=False
    )

    op.create_table(
        "patients",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.String(length=32), nullable=False),
        sa.Column("updated_at", sa.String(length=32), nullable=False),
        sa.Column("created_seq", sa.BigInteger(), nullable=False),
        sa.Column("doctor_id", sa.String(length=128), nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=False),
        sa.Column("last_name", sa.String(length=255), nullable=False),
        sa.Column("age", sa.Integer(), nullable=False),
        sa.Column("photos", JSON_DOCUMENT, nullable=False),
        sa.Column("photo", sa.String(length=2048), nullable=True),
        sa.Column("disease", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_patients"),
    )
    op.create_index("ix_patients_doctor_id", "patients", ["doctor_id"], unique=False)
    op.create_index("ix_patients_created_at", "patients", ["created_at"], unique=False)

    op.create_table(
        "consultations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.String(length=32), nullable=False),
        sa.Column("updated_at", sa.String(length=32), nullable=False),
        sa.Column("created_seq", sa.BigInteger(), nullable=False),
        sa.Column("patient_id", sa.String(length=36), nullable=False),
        sa.Column("doctor_id", sa.String(length=128), nullable=False),
        sa.Column("date", sa.String(length=32), nullable=False),
        sa.Column("disease", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("diagnosis", sa.Text(), nullable=False),
        sa.Column("photos", JSON_DOCUMENT, nullable=False),
        sa.Column("follow_ups", JSON_DOCUMENT, nullable=False),
        sa.Column("has_follow_up", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_follow_up_date", sa.String(length=32), nullable=True),
        sa.Column("is_follow_up", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("original_consultation_id", sa.String(length=36), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["patient_id"],
            ["patients.id"],
            name="fk_consultations_patient_id_patients",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_consultations"),
    )
    op.create_index(
        "ix_consultations_patient_id", "consultations", ["patient_id"], unique=False
    )
    op.create_index(
        "ix_consultations_doctor_id", "consultations", ["doctor_id"], unique=False
    )
    op.create_index(
        "ix_consultations_created_at", "consultations", ["created_at"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_consultations_created_at", table_name="consultations")
    op.drop_index("ix_consultations_doctor_id", table_name="consultations")
    op.drop_index("ix_consultations_patient_id", table_name="consultations")
    op.drop_table("consultations")

    op.drop_index("ix_patients_created_at", table_name="patients")
    op.drop_index("ix_patients_doctor_id", table_name="patients")
    op.drop_table("patients")

    op.drop_index("ix_doctor_profiles_created_at", table_name="doctor_profiles")
    op.drop_table("doctor_profiles")
