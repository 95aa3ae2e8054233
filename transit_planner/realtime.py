import itertools as it, operator as op, functools as ft
from collections import namedtuple
import time, datetime, threading

import attr

from . import utils as u, types as t


class RealtimeFetchError(t.public.PlannerError): pass


TripStatus = t.public.TripStatus

OverlayState = namedtuple('OverlayState', 'updates alerts ingested_at')


def _timestamp(val, now):
	if val is None or val == '': return now
	if isinstance(val, datetime.datetime):
		if val.tzinfo is None: val = val.replace(tzinfo=datetime.timezone.utc)
		return val.timestamp()
	val = float(val)
	if val > 1e11: val /= 1000 # milliseconds
	return val

def parse_trip_update(val, now):
	'Build TripUpdate from mapping with trip_id, delay[_seconds], status and timestamp keys.'
	if isinstance(val, t.public.TripUpdate):
		if val.updated_at is None: val = attr.evolve(val, updated_at=now)
		return val
	delay = int(u.get_any(val, 'delay_seconds', 'delay', default=0) or 0)
	status = val.get('status')
	if not status: status = TripStatus.delayed if delay > 0 else TripStatus.on_time
	return t.public.TripUpdate( val['trip_id'], delay,
		TripStatus(getattr(status, 'value', status)),
		_timestamp(u.get_any(val, 'timestamp', 'updated_at'), now) )

def parse_alert(val, now):
	if isinstance(val, t.public.ServiceAlert):
		if val.updated_at is None: val = attr.evolve(val, updated_at=now)
		return val
	val = dict(val)
	val['updated_at'] = _timestamp(u.get_any(val, 'timestamp', 'updated_at'), now)
	val.pop('timestamp', None)
	return u.struct_from_val(val, t.public.ServiceAlert)


class RealtimeOverlay:
	'''Latest trip delays/statuses and service alerts, keyed by trip_id/route_id.
		Each ingest builds new state and replaces old one in a single assignment,
			so readers always see either complete old or complete new state.
		Entries older than ttl seconds are ignored when applied.'''

	def __init__(self, ttl=120, clock=time.time):
		self.ttl, self.clock = ttl, clock
		self.state = OverlayState(dict(), tuple(), None)
		self.log = u.get_logger('tp.realtime')

	def __len__(self): return len(self.state.updates)

	def ingest(self, updates, alerts=None):
		'''Replace current overlay state with new trip updates and alerts.
			Malformed entries are skipped with a warning,
				as one bad record should not discard the whole feed.'''
		now, update_map, alert_list = self.clock(), dict(), list()
		for val in updates or list():
			try: upd = parse_trip_update(val, now)
			except (KeyError, TypeError, ValueError) as err:
				self.log.warning('Skipping malformed trip update ({}): {!r}', err, val)
				continue
			update_map[upd.trip_id] = upd
		for val in alerts or list():
			try: alert_list.append(parse_alert(val, now))
			except (KeyError, TypeError, ValueError) as err:
				self.log.warning('Skipping malformed service alert ({}): {!r}', err, val)
		self.state = OverlayState(update_map, tuple(alert_list), now)
		self.log.debug( 'Realtime overlay replaced:'
			' {} trip update(s), {} alert(s)', len(update_map), len(alert_list) )

	def _fresh(self, item, now):
		return now - item.updated_at <= self.ttl

	def trip_update(self, trip_id, now=None):
		if now is None: now = self.clock()
		upd = self.state.updates.get(trip_id)
		return upd if upd and self._fresh(upd, now) else None

	def alerts_for_routes(self, route_ids, now=None, state=None):
		if now is None: now = self.clock()
		route_ids = set(route_ids)
		return tuple( alert for alert in (state or self.state).alerts
			if self._fresh(alert, now) and route_ids.intersection(alert.route_ids) )

	def apply(self, itin, now=None):
		'''Return copy of itinerary with delay/status set on transit legs
				that have fresh updates, and has_realtime flag set if any of them do.
			Scheduled times are never modified.'''
		if now is None: now = self.clock()
		state, legs, has_realtime = self.state, list(), False
		for leg in itin.legs:
			upd = leg.trip_id and state.updates.get(leg.trip_id)
			if upd and self._fresh(upd, now):
				leg, has_realtime = attr.evolve(leg, delay=upd.delay, status=upd.status), True
			legs.append(leg)
		alerts = self.alerts_for_routes(
			(leg.route_id for leg in itin.transit_legs), now, state )
		return attr.evolve(itin, legs=tuple(legs), has_realtime=has_realtime, alerts=alerts)


class RealtimeRefresher:
	'''Background thread, periodically calling fetch_func and ingesting its result.
		fetch_func should return list of trip updates or a
			(trip_updates, alerts) tuple, or a dict with these two keys.
		Failures are logged and counted, keeping previous overlay state.'''

	def __init__(self, overlay, fetch_func, interval=30):
		self.overlay, self.fetch_func, self.interval = overlay, fetch_func, interval
		self.log = u.get_logger('tp.realtime')
		self.last_fetch, self.fetch_count, self.error_count = None, 0, 0
		self._thread, self._stop = None, threading.Event()

	@property
	def running(self): return bool(self._thread and self._thread.is_alive())

	@property
	def status(self):
		return dict( running=self.running,
			last_fetch=self.last_fetch and datetime.datetime.fromtimestamp(
				self.last_fetch, datetime.timezone.utc ).isoformat(),
			fetch_count=self.fetch_count, error_count=self.error_count,
			interval_seconds=self.interval )

	def fetch(self):
		try:
			data = self.fetch_func()
			if isinstance(data, dict): updates, alerts = data.get('trip_updates'), data.get('alerts')
			elif isinstance(data, tuple): updates, alerts = data
			else: updates, alerts = data, None
			self.overlay.ingest(updates, alerts)
		except Exception as err:
			raise RealtimeFetchError('Failed to fetch realtime data: {}'.format(err)) from err

	def tick(self):
		'Run one fetch, returning True on success.'
		try: self.fetch()
		except RealtimeFetchError as err:
			self.error_count += 1
			self.log.error('{} - will retry in {}s', err, self.interval)
			return False
		self.last_fetch = time.time()
		self.fetch_count += 1
		return True

	def run(self):
		while True:
			self.tick()
			if self._stop.wait(self.interval): break

	def start(self):
		if self.running:
			self.log.warning('Realtime refresher already running')
			return
		self._stop.clear()
		self._thread = threading.Thread(target=self.run, name='tp-realtime', daemon=True)
		self._thread.start()
		self.log.info('Realtime refresher started (interval: {}s)', self.interval)

	def stop(self, timeout=None):
		if not self._thread: return
		self._stop.set()
		self._thread.join(timeout)
		self._thread = None
		self.log.info('Realtime refresher stopped')
