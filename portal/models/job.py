"""ORM model for submitted jobs: the record type carrying an encrypted field."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func

from portal.models.base import Base


class Job(Base):
    """
    Submitted job. opn_number is stored only as ciphertext (base64(IV || ciphertext)).

    data_hmac is computed over the plaintext (job_name, opn_number) before encryption.
    clear_text_data is an unprotected free-text description.
    """

    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    job_name = Column(String(255), nullable=False)
    opn_number_encrypted = Column(Text, nullable=False, default="")
    clear_text_data = Column(Text, nullable=False, default="")
    data_hmac = Column(String(64), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )
