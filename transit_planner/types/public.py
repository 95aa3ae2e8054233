import itertools as it, operator as op, functools as ft
import enum, datetime, math

from .. import utils as u
from .gtfs import Mode, Stop


class PlannerError(Exception): pass
class InputError(PlannerError): pass


class Optimize(enum.Enum):
	time = 'time'
	transfers = 'transfers'
	cost = 'cost'

class LegType(enum.Enum):
	walk = 'walk'
	transit = 'transit'

class TripStatus(enum.Enum):
	scheduled = 'scheduled'
	on_time = 'on_time'
	delayed = 'delayed'
	canceled = 'canceled'


@u.attr_struct(frozen=True)
class Point:
	lat = u.attr_init()
	lon = u.attr_init()
	name = u.attr_init(None)

	def validate(self, label='point'):
		for k, lim in ('lat', 90), ('lon', 180):
			v = getattr(self, k)
			if isinstance(v, bool) or not isinstance(v, (int, float)) or math.isnan(v):
				raise InputError('Invalid {} {}: {!r}'.format(label, k, v))
			if not -lim <= v <= lim:
				raise InputError('{} {} out of range [-{}, {}]: {}'.format(label.title(), k, lim, lim, v))
		return self

	@classmethod
	def from_val(cls, val):
		if isinstance(val, cls): return val
		if isinstance(val, dict):
			try: return cls(val['lat'], u.get_any(val, 'lon', 'lng'), val.get('name'))
			except KeyError as err: raise InputError('Missing point field: {}'.format(err)) from None
		if isinstance(val, (tuple, list)) and len(val) in [2, 3]: return cls(*val)
		raise InputError('Unrecognized point value: {!r}'.format(val))


### Request

max_transfers_limit = 5
max_routes_cap = 10

@u.attr_struct(vals_to_attrs=True)
class PlanOptions:
	departure_time = None # datetime, naive values are agency-local
	arrival_time = None # arrive-by query, exclusive with departure_time
	optimize = Optimize.time
	max_transfers = 3
	wheelchair = False
	modes = None # iterable of Mode or mode names, None - all modes
	max_routes = 5
	walk_radius = None # meters, None - planner default

	def validate(self):
		'Check and normalize option values, raising InputError on any problems.'
		if self.departure_time is not None and self.arrival_time is not None:
			raise InputError('Only one of departure_time/arrival_time can be specified')
		for k in 'departure_time', 'arrival_time':
			v = getattr(self, k)
			if v is not None and not isinstance(v, datetime.datetime):
				raise InputError('{} must be a datetime: {!r}'.format(k, v))
		try: self.optimize = Optimize(getattr(self.optimize, 'value', self.optimize))
		except ValueError:
			raise InputError('Unsupported optimize value: {!r}'.format(self.optimize)) from None
		if isinstance(self.max_transfers, bool) or not isinstance(self.max_transfers, int)\
				or not 0 <= self.max_transfers <= max_transfers_limit:
			raise InputError( 'max_transfers must be an'
				' integer in 0-{}: {!r}'.format(max_transfers_limit, self.max_transfers) )
		if isinstance(self.max_routes, bool) or not isinstance(self.max_routes, int)\
				or self.max_routes < 1:
			raise InputError('max_routes must be a positive integer: {!r}'.format(self.max_routes))
		self.max_routes = min(self.max_routes, max_routes_cap)
		if self.walk_radius is not None and not (
				isinstance(self.walk_radius, (int, float)) and self.walk_radius > 0 ):
			raise InputError('walk_radius must be a positive number: {!r}'.format(self.walk_radius))
		self.wheelchair = bool(self.wheelchair)
		if self.modes is None: modes = set(Mode)
		else:
			if isinstance(self.modes, (str, Mode)): self.modes = [self.modes]
			modes = set()
			for mode in self.modes:
				try: modes.add(Mode(getattr(mode, 'value', mode)))
				except ValueError: raise InputError('Unsupported mode: {!r}'.format(mode)) from None
			if not modes: raise InputError('Empty modes filter')
		self.modes = frozenset(modes)
		return self


### Result

@u.attr_struct(frozen=True, repr=False)
class Leg:
	type = u.attr_init()
	src = u.attr_init() # Stop or Point
	dst = u.attr_init()
	dts_dep = u.attr_init()
	dts_arr = u.attr_init()
	distance = u.attr_init(0)
	route_id = u.attr_init(None)
	trip_id = u.attr_init(None)
	headsign = u.attr_init(None)
	mode = u.attr_init(None)
	stop_count = u.attr_init(0)
	delay = u.attr_init(None) # seconds, set from realtime data
	status = u.attr_init(None)

	@property
	def duration(self): return self.dts_arr - self.dts_dep

	@property
	def realtime_dep(self):
		return None if self.delay is None else self.dts_dep + self.delay

	@property
	def realtime_arr(self):
		return None if self.delay is None else self.dts_arr + self.delay

	def __repr__(self):
		if self.type is LegType.walk:
			return '<Leg walk {} -> {} {:.0f}m>'.format(_place_name(self.src), _place_name(self.dst), self.distance)
		return '<Leg {}:{} {} [{}] -> {} [{}]>'.format(
			self.route_id, self.trip_id, _place_name(self.src), u.dts_format(self.dts_dep),
			_place_name(self.dst), u.dts_format(self.dts_arr) )

def _place_name(place):
	if isinstance(place, Stop): return place.name
	return place.name or '{:.5f},{:.5f}'.format(place.lat, place.lon)

def _place_dict(place):
	info = dict(name=place.name, lat=place.lat, lon=place.lon)
	if isinstance(place, Stop): info['stop_id'] = place.id
	return info


@u.attr_struct(frozen=True)
class FareItem:
	leg = u.attr_init() # index of the leg in itinerary
	route_id = u.attr_init()
	route_name = u.attr_init()
	fare = u.attr_init()
	currency = u.attr_init()
	fare_type = u.attr_init('regular')

@u.attr_struct(frozen=True)
class Fare:
	total = u.attr_init()
	currency = u.attr_init()
	breakdown = u.attr_init(tuple)


@u.attr_struct(frozen=True, repr=False)
class Itinerary:
	legs = u.attr_init(tuple)
	service_date = u.attr_init(None)
	fare = u.attr_init(None)
	has_realtime = u.attr_init(False)
	alerts = u.attr_init(tuple)

	@property
	def dts_dep(self): return self.legs[0].dts_dep if self.legs else 0
	@property
	def dts_arr(self): return self.legs[-1].dts_arr if self.legs else 0
	@property
	def total_duration(self): return self.dts_arr - self.dts_dep

	@property
	def transit_legs(self):
		return list(leg for leg in self.legs if leg.type is LegType.transit)

	@property
	def trip_ids(self): return tuple(leg.trip_id for leg in self.transit_legs)

	@property
	def transfers(self):
		'Number of transit leg boundaries where trip changes.'
		trip_ids = self.trip_ids
		return sum(1 for a, b in zip(trip_ids, trip_ids[1:]) if a != b)

	def __repr__(self):
		return '<Itinerary[ {} ]>'.format(' - '.join(map(repr, self.legs)))

	def as_dict(self, timezone=None):
		'''Return plain-data representation for external API,
			with times as ISO-8601 strings if timezone is specified, or raw day-seconds otherwise.'''
		from .. import gtfs
		def dts_value(dts):
			if dts is None or not timezone or not self.service_date: return dts
			return gtfs.dts_to_datetime(self.service_date, dts, timezone).isoformat()
		legs = list()
		for leg in self.legs:
			info = dict( type=leg.type.value,
				**{'from': _place_dict(leg.src), 'to': _place_dict(leg.dst)},
				depart=dts_value(leg.dts_dep), arrive=dts_value(leg.dts_arr),
				duration=leg.duration, distance=round(leg.distance, 1) )
			if leg.type is LegType.transit:
				info.update( route_id=leg.route_id, trip_id=leg.trip_id,
					headsign=leg.headsign, mode=leg.mode and leg.mode.value, stops=leg.stop_count )
			if leg.delay is not None:
				info.update( delay=leg.delay, status=leg.status and leg.status.value,
					realtime_depart=dts_value(leg.realtime_dep),
					realtime_arrive=dts_value(leg.realtime_arr) )
			legs.append(info)
		data = dict( legs=legs,
			total_duration=self.total_duration, transfers=self.transfers,
			has_realtime=self.has_realtime,
			service_date=self.service_date and self.service_date.isoformat() )
		if self.fare:
			data['fare'] = dict(
				total=self.fare.total, currency=self.fare.currency,
				breakdown=list(u.attr.asdict(item) for item in self.fare.breakdown) )
		if self.alerts: data['alerts'] = list(u.attr.asdict(a) for a in self.alerts)
		return data

	def pretty_print(self, dts_format_func=None, indent=0, **print_kws):
		if not dts_format_func: dts_format_func = u.dts_format
		p = lambda tpl,*a,**k: print(' '*indent + tpl.format(*a,**k), **print_kws)
		p( 'Itinerary (departure: {}, arrival: {}, transfers: {}, duration: {}{}):',
			dts_format_func(self.dts_dep), dts_format_func(self.dts_arr),
			self.transfers, datetime.timedelta(seconds=int(self.total_duration)),
			', realtime' if self.has_realtime else '' )
		for leg in self.legs:
			if leg.type is LegType.transit:
				p('  {} [{}:{}]{}:', leg.mode.value if leg.mode else 'transit',
					leg.route_id, leg.trip_id, ' to {}'.format(leg.headsign) if leg.headsign else '')
				delay = '' if not leg.delay else ' (delay: {:+d}s)'.format(int(leg.delay))
				p('    from (dep at {}{}): {}', dts_format_func(leg.dts_dep), delay, _place_name(leg.src))
				p('    to (arr at {}{}): {}', dts_format_func(leg.dts_arr), delay, _place_name(leg.dst))
			else:
				p('  walk ({:,.0f}m, time: {}):', leg.distance, datetime.timedelta(seconds=int(leg.duration)))
				p('    from: {}', _place_name(leg.src))
				p('    to: {}', _place_name(leg.dst))
		if self.fare: p('  fare: {:,.0f} {}', self.fare.total, self.fare.currency)
		for alert in self.alerts: p('  alert [{}]: {}', alert.severity, alert.title)


### Realtime

@u.attr_struct(frozen=True)
class TripUpdate:
	trip_id = u.attr_init()
	delay = u.attr_init(0)
	status = u.attr_init(TripStatus.scheduled)
	updated_at = u.attr_init(None) # unix timestamp

@u.attr_struct(frozen=True)
class ServiceAlert:
	id = u.attr_init()
	title = u.attr_init()
	description = u.attr_init('')
	severity = u.attr_init('info')
	route_ids = u.attr_init(tuple, converter=tuple)
	updated_at = u.attr_init(None)
