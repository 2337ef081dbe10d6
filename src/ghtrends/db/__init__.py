from .engine import engine, make_engine
from .models import Base
