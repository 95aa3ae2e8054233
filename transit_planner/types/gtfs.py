### Static schedule records, as consumed by store.load()

import itertools as it, operator as op, functools as ft
import enum, datetime

from .. import utils as u


class CalendarException(enum.Enum): added, removed = '1', '2'

class RouteType(enum.IntEnum):
	tram, subway, rail, bus, ferry = range(5)
	cable_tram, aerial_lift, funicular = range(5, 8)
	trolleybus, monorail = 11, 12

class Mode(enum.Enum):
	bus = 'bus'
	train = 'train'
	subway = 'subway'
	tram = 'tram'
	ferry = 'ferry'

route_type_modes = {
	RouteType.tram: Mode.tram, RouteType.subway: Mode.subway,
	RouteType.rail: Mode.train, RouteType.bus: Mode.bus, RouteType.ferry: Mode.ferry,
	RouteType.cable_tram: Mode.tram, RouteType.funicular: Mode.train,
	RouteType.trolleybus: Mode.bus, RouteType.monorail: Mode.train }

# Extended GTFS route types, as (first, last, mode) ranges
route_type_ext_modes = [
	(100, 199, Mode.train), (200, 299, Mode.bus), (400, 499, Mode.subway),
	(700, 899, Mode.bus), (900, 999, Mode.tram), (1000, 1299, Mode.ferry) ]

def route_type_mode(route_type):
	'Map GTFS route_type to one of the planner modes, "bus" for anything unknown.'
	try: return route_type_modes[RouteType(route_type)]
	except (ValueError, KeyError): pass
	for a, b, mode in route_type_ext_modes:
		if a <= route_type <= b: return mode
	return Mode.bus


weekday_columns = [ 'monday', 'tuesday',
	'wednesday', 'thursday', 'friday', 'saturday', 'sunday' ]

def weekdays_mask(val):
	'''Convert weekday spec to bitmask (bit 0 is monday).
		Accepts int mask, "1111100" string or sequence of 7 bools/ints.'''
	if isinstance(val, int): mask = val
	else:
		if isinstance(val, str): val = list(val.strip())
		val = list(val)
		if len(val) != 7: raise ValueError('Weekdays spec must have 7 values: {!r}'.format(val))
		mask = sum(1 << n for n, v in enumerate(val) if int(v))
	if not 0 <= mask < 2**7: raise ValueError(mask)
	return mask

def parse_date(val, fmt='%Y%m%d'):
	if isinstance(val, datetime.datetime): return val.date()
	if isinstance(val, datetime.date): return val
	return datetime.datetime.strptime(str(val).strip().replace('-', ''), fmt).date()

def parse_bool(val):
	if isinstance(val, str): return val.strip().lower() in ['1', 'true', 'yes']
	return bool(val)


@u.attr_struct(frozen=True)
class Agency:
	id = u.attr_init()
	name = u.attr_init()
	url = u.attr_init(None)
	timezone = u.attr_init(None)

@u.attr_struct(frozen=True)
class Route:
	id = u.attr_init()
	agency_id = u.attr_init(None)
	short_name = u.attr_init('')
	long_name = u.attr_init('')
	route_type = u.attr_init(RouteType.bus, converter=int)
	color = u.attr_init(None)

	@property
	def name(self): return self.short_name or self.long_name or self.id

	@property
	def mode(self): return route_type_mode(self.route_type)

@u.attr_struct(frozen=True, repr=False)
class Stop:
	id = u.attr_init()
	name = u.attr_init()
	lat = u.attr_init(converter=float)
	lon = u.attr_init(converter=float)
	wheelchair = u.attr_init(False, converter=parse_bool)

	def __repr__(self):
		if self.id == self.name: return '<Stop {}>'.format(self.id)
		return '<Stop {} [{}]>'.format(self.name, self.id)

@u.attr_struct(frozen=True)
class Trip:
	id = u.attr_init()
	route_id = u.attr_init()
	service_id = u.attr_init()
	headsign = u.attr_init(None)
	wheelchair = u.attr_init(True, converter=parse_bool)

@u.attr_struct(frozen=True)
class StopTime:
	trip_id = u.attr_init()
	stop_id = u.attr_init()
	stop_sequence = u.attr_init(converter=int)
	arrival_time = u.attr_init(None)
	departure_time = u.attr_init(None)

@u.attr_struct(frozen=True)
class ServiceCalendar:
	service_id = u.attr_init()
	weekdays = u.attr_init(converter=weekdays_mask)
	start_date = u.attr_init(converter=parse_date)
	end_date = u.attr_init(converter=parse_date)

	def active_on(self, date):
		if not self.start_date <= date <= self.end_date: return False
		return bool(self.weekdays & (1 << date.weekday()))

@u.attr_struct(frozen=True)
class CalendarDate:
	service_id = u.attr_init()
	date = u.attr_init(converter=parse_date)
	exception = u.attr_init(converter=lambda v: CalendarException(str(getattr(v, 'value', v))))

def _int_or_none(val):
	if val is None or val == '': return None
	return int(val)

@u.attr_struct(frozen=True)
class FareAttribute:
	fare_id = u.attr_init()
	price = u.attr_init(converter=float)
	currency = u.attr_init('JPY')
	transfers = u.attr_init(0, converter=_int_or_none) # None - unlimited
	transfer_duration = u.attr_init(None, converter=_int_or_none) # seconds

@u.attr_struct(frozen=True)
class FareRule:
	fare_id = u.attr_init()
	route_id = u.attr_init()


# Keys of records mapping passed to store.load()
record_types = dict(
	agencies=Agency, routes=Route, stops=Stop, trips=Trip,
	stop_times=StopTime, calendar=ServiceCalendar, calendar_dates=CalendarDate,
	fare_attributes=FareAttribute, fare_rules=FareRule )
