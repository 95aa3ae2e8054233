import itertools as it, operator as op, functools as ft
import math

from . import utils as u


@u.attr_struct(frozen=True)
class NearbyStop:
	stop = u.attr_init()
	distance = u.attr_init() # meters
	walking_time = u.attr_init() # seconds


class GridIndex:
	'''Fixed-size lat/lon grid of stops, to avoid checking distance to every stop.
		Cells are cell_deg degrees on each side, with cell columns
			wrapping around the antimeridian, and any query touching a pole
			(or too wide for longitude span to make sense) falling back to all stops.'''

	cell_deg = 0.01

	def __init__(self, stops, cell_deg=None):
		if cell_deg: self.cell_deg = cell_deg
		self.lon_cells = int(round(360 / self.cell_deg))
		self.stops, self.cells = list(stops), dict()
		for stop in self.stops:
			self.cells.setdefault(self.cell_key(stop.lat, stop.lon), list()).append(stop)

	def __len__(self): return len(self.stops)

	def cell_key(self, lat, lon):
		return ( int(math.floor(lat / self.cell_deg)),
			int(math.floor(lon / self.cell_deg)) % self.lon_cells )

	def candidates(self, lat, lon, radius):
		'''Iterate over stops that can be within radius (meters) of the point.
			Bounding box is the exact one for great-circle distance, plus some float slack.'''
		r = radius / u.earth_radius
		dlat = math.degrees(r) + 1e-9
		lat_a, lat_b = lat - dlat, lat + dlat
		if r >= math.pi / 2 or lat_a <= -90 or lat_b >= 90:
			yield from self.stops
			return
		k = math.sin(r) / math.cos(math.radians(lat))
		if k >= 1:
			yield from self.stops
			return
		dlon = math.degrees(math.asin(k)) + 1e-9
		(y_a, x_a), (y_b, x_b) = (
			( int(math.floor(v_lat / self.cell_deg)),
				int(math.floor(v_lon / self.cell_deg)) )
			for v_lat, v_lon in [(lat_a, lon - dlon), (lat_b, lon + dlon)] )
		if x_b - x_a + 1 >= self.lon_cells: x_a, x_b = 0, self.lon_cells - 1
		for y, x in it.product(range(y_a, y_b + 1), range(x_a, x_b + 1)):
			yield from self.cells.get((y, x % self.lon_cells), ())


class StopLocator:

	def __init__(self, snapshot, walking_speed=1.4, radius=800):
		self.snapshot, self.walking_speed, self.radius = snapshot, walking_speed, radius

	def nearby(self, lat, lon, radius=None, wheelchair=False, limit=None):
		'''Return list of NearbyStop for all stops within radius meters of the point,
				ordered by distance, with stop_id as a tie-breaker.
			wheelchair=True only returns stops with wheelchair boarding.'''
		if radius is None: radius = self.radius
		stops = list()
		for stop in self.snapshot.stop_index.candidates(lat, lon, radius):
			if wheelchair and not stop.wheelchair: continue
			dist = u.haversine(lat, lon, stop.lat, stop.lon)
			if dist > radius: continue
			stops.append(NearbyStop(stop, dist, u.walking_time(dist, self.walking_speed)))
		stops.sort(key=lambda ns: (ns.distance, ns.stop.id))
		return stops[:limit] if limit else stops

	def search_stops(self, query, lat=None, lon=None, radius=1000, limit=20):
		'''Find stops with query substring in their name (case-insensitive),
				optionally only within radius of lat/lon point.
			Results are ordered by distance when point is specified, by name otherwise.'''
		query = query.strip().lower()
		if lat is not None and lon is not None:
			stops = list( ns.stop for ns in self.nearby(lat, lon, radius)
				if query in ns.stop.name.lower() )
		else:
			stops = sorted(
				(stop for stop in self.snapshot.stops.values() if query in stop.name.lower()),
				key=lambda stop: (stop.name, stop.id) )
		return stops[:limit] if limit else stops
