from sqlalchemy import create_engine, Column, String, Float, DateTime, Integer, JSON
from sqlalchemy.orm import declarative_base, sessionmaker
import logging

from src.config import DB_URL

# Get logger
logger = logging.getLogger(__name__)

Base = declarative_base()

# Define the Event table structure
class EventDB(Base):
    __tablename__ = "events"
    id = Column(String, primary_key=True, index=True)
    title = Column(String)
    host_id = Column(String)
    latitude = Column(Float)
    longitude = Column(Float)
    geohash = Column(String, index=True)
    radius_meters = Column(Float, default=60)
    people_count = Column(Integer, default=0)
    attendee_count = Column(Integer, default=0)
    signal_strength = Column(Integer, default=0)
    tags = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)
    starts_at = Column(DateTime, nullable=True)
    ends_at = Column(DateTime, nullable=True)

# Define the Signal table structure
class SignalDB(Base):
    __tablename__ = "signals"
    id = Column(String, primary_key=True, index=True)
    user_id = Column(String)
    event_id = Column(String, index=True)
    latitude = Column(Float)
    longitude = Column(Float)
    geohash = Column(String, index=True)
    signal_strength = Column(Integer, default=1)
    people_count = Column(Integer, default=0)
    color = Column(String, nullable=True)
    radius_meters = Column(Integer, default=75)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)

def make_engine(url=DB_URL):
    # SQLite connections are shared with FastAPI's worker threads
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)

engine = make_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def create_tables(bind=None):
    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database tables created (if they didn't exist previously).")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
