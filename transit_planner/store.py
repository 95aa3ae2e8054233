import itertools as it, operator as op, functools as ft
from collections import namedtuple, defaultdict
import datetime, bisect

from . import utils as u, types as t, gtfs, locator


log = u.get_logger('tp.store')

day_seconds = 24 * 3600


class DataError(t.public.PlannerError): pass


@u.attr_struct(frozen=True)
class TripStop:
	stop_id = u.attr_init()
	stopidx = u.attr_init()
	dts_arr = u.attr_init()
	dts_dep = u.attr_init()
	dist = u.attr_init(0) # meters along the trip from its first stop

TripDeparture = namedtuple('TripDeparture', 'trip dts_dep stopidx day_offset')
ScheduleEntry = namedtuple('ScheduleEntry', 'trip route stopidx dts_arr dts_dep')


class Snapshot:
	'''Immutable indexed schedule data.
		Only built by load(), and never modified afterwards,
			so that it can be shared between any number of concurrent searches.'''

	def __init__( self, agencies, routes, stops, trips,
			trip_stops, stop_visits, departures, calendar, calendar_dates,
			fare_attributes, fare_rules, timezone ):
		self.agencies, self.routes, self.stops, self.trips = agencies, routes, stops, trips
		self._trip_stops, self._stop_visits, self._departures = trip_stops, stop_visits, departures
		self.calendar, self.calendar_dates = calendar, calendar_dates
		self.fare_attributes, self.fare_rules = fare_attributes, fare_rules
		self.timezone = timezone
		self.stop_index = locator.GridIndex(stops.values())
		# Cache of derived values only, same result for same key from any thread
		self._services_cache = dict()

	def __getstate__(self):
		state = self.__dict__.copy()
		state['_services_cache'] = dict()
		return state

	def get_stop(self, stop_id): return self.stops.get(stop_id)
	def get_route(self, route_id): return self.routes.get(route_id)
	def get_trip(self, trip_id): return self.trips.get(trip_id)
	def get_agency(self, agency_id): return self.agencies.get(agency_id)

	def trip_stops(self, trip_id): return self._trip_stops.get(trip_id, ())

	def route_mode(self, route_id): return self.routes[route_id].mode

	def fare_for_route(self, route_id):
		fare_id = self.fare_rules.get(route_id)
		return fare_id and self.fare_attributes[fare_id]

	def service_active(self, service_id, date):
		'Weekday/date-range calendar match, overridden by calendar_dates exceptions for that date.'
		exc = self.calendar_dates.get(service_id, dict()).get(date)
		if exc is t.gtfs.CalendarException.added: return True
		if exc is t.gtfs.CalendarException.removed: return False
		sc = self.calendar.get(service_id)
		return bool(sc and sc.active_on(date))

	def services_on(self, date):
		services = self._services_cache.get(date)
		if services is None:
			services = self._services_cache[date] = frozenset(
				svc_id for svc_id in set(self.calendar).union(self.calendar_dates)
				if self.service_active(svc_id, date) )
		return services

	def trips_at_stop(self, stop_id, after_time, service_date, until=None):
		'''Return list of TripDeparture tuples - (trip, dts_dep, stopidx, day_offset) -
				for trips departing from stop at after_time or later, ordered by departure time.
			Times are relative to service_date, and trips from previous service day
				(or next one, if "until" extends past midnight) are included with their times
				shifted by day_offset, which should be added to all their stop times.
			Last stops of trips are not included, as there is nowhere to ride from there.'''
		dts_list, entries = self._departures.get(stop_id, ((), ()))
		deps = list()
		for day in -1, 0, 1:
			if day > 0 and (until is None or until < day_seconds): continue
			offset = day * day_seconds
			services = self.services_on(service_date + datetime.timedelta(day))
			if not services: continue
			for n in range(bisect.bisect_left(dts_list, after_time - offset), len(entries)):
				dts_dep, trip_id, stopidx = entries[n]
				dts_dep += offset
				if until is not None and dts_dep > until: break
				trip = self.trips[trip_id]
				if trip.service_id not in services: continue
				deps.append(TripDeparture(trip, dts_dep, stopidx, offset))
		deps.sort(key=lambda dep: (dep.dts_dep, dep.trip.id, dep.stopidx))
		return deps

	def stop_schedule(self, stop_id, service_date):
		'List of ScheduleEntry tuples for all trips stopping at stop on that day, by departure time.'
		services, schedule = self.services_on(service_date), list()
		for trip_id, stopidx in self._stop_visits.get(stop_id, ()):
			trip = self.trips[trip_id]
			if trip.service_id not in services: continue
			ts = self._trip_stops[trip_id][stopidx]
			schedule.append(ScheduleEntry(
				trip, self.routes[trip.route_id], stopidx, ts.dts_arr, ts.dts_dep ))
		schedule.sort(key=lambda e: (e.dts_dep, e.trip.id))
		return schedule

	def search_routes(self, query):
		query = query.strip().lower()
		return sorted(( route for route in self.routes.values()
				if query in route.short_name.lower() or query in route.long_name.lower() ),
			key=op.attrgetter('id'))

	def trip_distance(self, trip_id, stopidx_a, stopidx_b):
		stops = self._trip_stops[trip_id]
		return stops[stopidx_b].dist - stops[stopidx_a].dist

	def stat_counts(self):
		return dict( agencies=len(self.agencies), routes=len(self.routes),
			stops=len(self.stops), trips=len(self.trips),
			stop_times=sum(map(len, self._trip_stops.values())),
			services=len(set(self.calendar).union(self.calendar_dates)) )


def _parse_records(records):
	unknown = set(records).difference(t.gtfs.record_types)
	if unknown: raise DataError('Unknown record types: {}'.format(', '.join(sorted(unknown))))
	parsed = dict()
	for k, cls in t.gtfs.record_types.items():
		items = parsed[k] = list()
		for n, val in enumerate(records.get(k) or list()):
			try: items.append(u.struct_from_val(val, cls))
			except (TypeError, ValueError) as err:
				raise DataError('Malformed {} record #{}: {}'.format(k, n, err)) from None
	return parsed

def _index(items, key, name):
	idx = dict()
	for item in items:
		k = getattr(item, key)
		if k in idx: raise DataError('Duplicate {} id: {!r}'.format(name, k))
		idx[k] = item
	return idx

def _parse_dts(val, st):
	try: return u.dts_parse(val)
	except ValueError:
		raise DataError('Malformed time value for stop_time {}: {!r}'.format(st, val)) from None

def _trip_stops(trip_id, stop_times, stops):
	'Build TripStop tuple for trip, checking stop sequence and time monotonicity.'
	trip_stops, dist, seq_prev = list(), 0, None
	for stopidx, st in enumerate(sorted(stop_times, key=op.attrgetter('stop_sequence'))):
		if seq_prev is not None and st.stop_sequence <= seq_prev:
			raise DataError('Duplicate stop_sequence {} for trip {!r}'.format(st.stop_sequence, trip_id))
		seq_prev = st.stop_sequence
		dts_arr, dts_dep = (
			(None if v is None else _parse_dts(v, st))
			for v in [st.arrival_time, st.departure_time] )
		if dts_arr is None: dts_arr = dts_dep
		if dts_dep is None: dts_dep = dts_arr
		if dts_arr is None:
			raise DataError('Missing arrival/departure times for trip {!r} stop: {}'.format(trip_id, st))
		if trip_stops:
			a, b = stops[trip_stops[-1].stop_id], stops[st.stop_id]
			dist += u.haversine(a.lat, a.lon, b.lat, b.lon)
		ts = TripStop(st.stop_id, stopidx, dts_arr, dts_dep, dist)
		if ts.dts_arr > ts.dts_dep or (trip_stops and trip_stops[-1].dts_dep > ts.dts_arr):
			u.log_lines( log.debug,
				[('Time jumps backwards for stops of the trip: {}', trip_id)]
				+ list(('  {}', ts) for ts in trip_stops + [ts]) )
			raise DataError('Time jumps backwards for stops of the trip: {!r}'.format(trip_id))
		trip_stops.append(ts)
	return tuple(trip_stops)


def load(records, timezone=None):
	'''Validate records and build Snapshot from these.
		records: mapping of record type name (see types.gtfs.record_types)
			to iterable of record objects, dicts with their field names or tuples.
		Raises DataError on any malformed or missing reference, producing no snapshot.'''
	recs = _parse_records(records)

	agencies = _index(recs['agencies'], 'id', 'agency')
	routes = _index(recs['routes'], 'id', 'route')
	stops = _index(recs['stops'], 'id', 'stop')
	trips = _index(recs['trips'], 'id', 'trip')
	calendar = _index(recs['calendar'], 'service_id', 'calendar service')
	fare_attributes = _index(recs['fare_attributes'], 'fare_id', 'fare')

	for stop in stops.values():
		if not (-90 <= stop.lat <= 90 and -180 <= stop.lon <= 180):
			raise DataError('Stop coordinates out of range: {!r} ({}, {})'.format(stop.id, stop.lat, stop.lon))
	for route in routes.values():
		if agencies and route.agency_id is not None and route.agency_id not in agencies:
			raise DataError('Route {!r} references unknown agency: {!r}'.format(route.id, route.agency_id))

	calendar_dates = defaultdict(dict)
	for cd in recs['calendar_dates']: calendar_dates[cd.service_id][cd.date] = cd.exception
	services = set(calendar).union(calendar_dates)

	for trip in trips.values():
		if trip.route_id not in routes:
			raise DataError('Trip {!r} references unknown route: {!r}'.format(trip.id, trip.route_id))
		if trip.service_id not in services:
			raise DataError('Trip {!r} references unknown service: {!r}'.format(trip.id, trip.service_id))

	stop_times = defaultdict(list)
	for st in recs['stop_times']:
		if st.trip_id not in trips:
			raise DataError('StopTime references unknown trip: {!r}'.format(st.trip_id))
		if st.stop_id not in stops:
			raise DataError('StopTime references unknown stop: {!r}'.format(st.stop_id))
		stop_times[st.trip_id].append(st)

	trip_stops, stop_visits, departures = dict(), defaultdict(list), defaultdict(list)
	for trip_id in sorted(stop_times):
		tss = trip_stops[trip_id] = _trip_stops(trip_id, stop_times[trip_id], stops)
		for ts in tss:
			stop_visits[ts.stop_id].append((trip_id, ts.stopidx))
			if ts.stopidx < len(tss) - 1:
				departures[ts.stop_id].append((ts.dts_dep, trip_id, ts.stopidx))
	for stop_id, entries in departures.items():
		entries.sort()
		departures[stop_id] = tuple(map(op.itemgetter(0), entries)), tuple(entries)

	fare_rules = dict()
	for rule in recs['fare_rules']:
		if rule.fare_id not in fare_attributes:
			raise DataError('Fare rule references unknown fare: {!r}'.format(rule.fare_id))
		if rule.route_id not in routes:
			raise DataError('Fare rule references unknown route: {!r}'.format(rule.route_id))
		fare_rules.setdefault(rule.route_id, rule.fare_id)

	if not timezone:
		timezone = next((a.timezone for a in agencies.values() if a.timezone), 'UTC')
	try: timezone = gtfs.get_timezone(timezone)
	except KeyError as err: raise DataError('Unknown timezone {!r}: {}'.format(timezone, err)) from None

	snapshot = Snapshot(
		agencies, routes, stops, trips,
		trip_stops, dict(stop_visits), dict(departures), calendar, dict(calendar_dates),
		fare_attributes, fare_rules, timezone )
	log.debug( 'Loaded schedule snapshot: {}', ', '.join(
		'{}={:,}'.format(k, v) for k, v in sorted(snapshot.stat_counts().items()) ) )
	return snapshot


class Store:
	'''Holder for the active Snapshot.
		Reloads build complete new snapshot and replace
			reference to it in one step, so anything that grabbed
			previous snapshot keeps using consistent data.'''

	def __init__(self, snapshot=None, timezone=None):
		self.snapshot, self.timezone = snapshot, timezone
		self.log = log

	def load(self, records):
		snapshot = load(records, timezone=self.timezone)
		self.snapshot = snapshot
		self.log.info('Activated new schedule snapshot ({:,} stops, {:,} trips)',
			len(snapshot.stops), len(snapshot.trips))
		return snapshot

	def load_dir(self, gtfs_dir):
		return self.load(gtfs.read_records(gtfs_dir))
