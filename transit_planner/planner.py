import itertools as it, operator as op, functools as ft
import datetime

import attr

from . import utils as u, types as t, gtfs, store, locator, engine, fares, realtime, ranking


@u.attr_struct(vals_to_attrs=True)
class PlannerConf:
	walk_radius = 800 # meters, for origin/destination stop candidates
	same_point_epsilon = 10 # meters, origin/destination closer than that are rejected
	timezone = None # None - timezone of the first agency, or UTC
	arrive_by_window = 3600 # seconds before arrival_time to search from, should not exceed max_wait
	realtime_ttl = 120 # seconds
	realtime_interval = 30 # seconds, for RealtimeRefresher


class Planner:
	'''Public entry point, tying Store snapshot, route search,
			fares, realtime overlay and ranking together.
		Safe to use from multiple threads, with snapshot and
			realtime data being replaced by other threads at any time.'''

	def __init__( self, data_store=None, conf=None,
			conf_engine=None, conf_fares=None, overlay=None, timer_func=None ):
		self.conf = conf or PlannerConf()
		self.conf_engine = conf_engine or engine.EngineConf()
		self.conf_fares = conf_fares or fares.FareConf()
		self.store = data_store or store.Store(timezone=self.conf.timezone)
		self.overlay = overlay or realtime.RealtimeOverlay(self.conf.realtime_ttl)
		self.timer_func, self.log = timer_func, u.get_logger('tp.planner')

	def load(self, records): return self.store.load(records)
	def load_dir(self, gtfs_dir): return self.store.load_dir(gtfs_dir)

	def ingest_realtime(self, updates, alerts=None):
		self.overlay.ingest(updates, alerts)

	def realtime_refresher(self, fetch_func):
		return realtime.RealtimeRefresher(self.overlay, fetch_func, self.conf.realtime_interval)

	@property
	def snapshot(self):
		snapshot = self.store.snapshot
		if snapshot is None: raise t.public.PlannerError('No schedule data loaded')
		return snapshot

	def locator(self, snapshot=None):
		return locator.StopLocator(
			snapshot or self.snapshot, self.conf_engine.walking_speed, self.conf.walk_radius )

	def parse_options(self, options):
		if options is None: options = t.public.PlanOptions()
		elif isinstance(options, t.public.PlanOptions): options = attr.evolve(options)
		else:
			try: options = u.struct_from_val(options, t.public.PlanOptions)
			except (TypeError, ValueError) as err:
				raise t.public.InputError('Invalid plan options: {}'.format(err)) from None
		return options.validate()

	def plan_trip(self, origin, destination, options=None, now=None):
		'''Return list of ranked Itinerary objects between two points,
				empty list if no route can be found.
			origin/destination can be Point, (lat, lon) tuple or dict with lat/lon keys.
			options can be PlanOptions or a dict of its fields.
			now is unix timestamp to check realtime data age against, current time by default.
			Raises InputError for invalid request parameters.'''
		origin = t.public.Point.from_val(origin).validate('origin')
		destination = t.public.Point.from_val(destination).validate('destination')
		opts = self.parse_options(options)
		if u.haversine( origin.lat, origin.lon,
				destination.lat, destination.lon ) <= self.conf.same_point_epsilon:
			raise t.public.InputError('Origin and destination are the same point')

		snapshot = self.snapshot # same snapshot is used for the whole request
		dt = opts.arrival_time or opts.departure_time\
			or datetime.datetime.now(datetime.timezone.utc)
		service_date, dts_start = gtfs.datetime_to_dts(dt, snapshot.timezone)
		dts_arr_max = None
		if opts.arrival_time:
			dts_arr_max, dts_start = dts_start, dts_start - self.conf.arrive_by_window

		loc = self.locator(snapshot)
		radius = opts.walk_radius or self.conf.walk_radius
		origin_stops, dest_stops = (
			loc.nearby(p.lat, p.lon, radius, wheelchair=opts.wheelchair)
			for p in [origin, destination] )
		if not origin_stops or not dest_stops:
			self.log.info( 'No stops within {:,.0f}m of {}', radius,
				'origin' if not origin_stops else 'destination' )
			return list()

		router = engine.RoutePlanner(snapshot, self.conf_engine, timer_func=self.timer_func)
		itineraries = router.plan( origin, destination,
			origin_stops, dest_stops, service_date, dts_start, opts )
		if dts_arr_max is not None:
			itineraries = list(itin for itin in itineraries if itin.dts_arr <= dts_arr_max)

		calc = fares.FareCalculator(snapshot, self.conf_fares)
		itineraries = list(self.overlay.apply(calc.apply(itin), now) for itin in itineraries)
		return ranking.rank(itineraries, opts.optimize, opts.max_routes)

	def search_stops(self, query, lat=None, lon=None, radius=1000, limit=20):
		return self.locator().search_stops(query, lat, lon, radius, limit)

	def stop_schedule(self, stop_id, service_date):
		snapshot = self.snapshot
		if stop_id not in snapshot.stops:
			raise t.public.InputError('Unknown stop_id: {!r}'.format(stop_id))
		return snapshot.stop_schedule(stop_id, service_date)
