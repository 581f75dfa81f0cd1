from sqlalchemy import Column, Integer, String, DateTime, BigInteger, Text, Boolean, ForeignKey, LargeBinary
from database import Base


# ─────────────────────────────────────────────────────────────
# Encrypted File
# ─────────────────────────────────────────────────────────────
class File(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    size = Column(BigInteger, nullable=False)          # original (plaintext) size
    encryption_key = Column(Text, nullable=False)      # opaque handle supplied by the client
    ciphertext = Column(LargeBinary, nullable=False)   # nonce || sealed bytes
    password_hash = Column(String, nullable=True)
    shared = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)


# ─────────────────────────────────────────────────────────────
# Share Token
# ─────────────────────────────────────────────────────────────
class ShareToken(Base):
    __tablename__ = "share_tokens"

    id = Column(Integer, primary_key=True, index=True)
    file_id = Column(Integer, ForeignKey("files.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=True)
    recipient_email = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    access_count = Column(Integer, nullable=False, default=0)


# ─────────────────────────────────────────────────────────────
# Activity Log
# ─────────────────────────────────────────────────────────────
class LogEntry(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True)
    # no FK: history outlives the file, file_name is the snapshot
    file_id = Column(Integer, nullable=True, index=True)
    file_name = Column(String, nullable=False)
    action = Column(String, nullable=False)   # upload | download | share | access | delete
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    details = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
