from . import gtfs, public, internal
