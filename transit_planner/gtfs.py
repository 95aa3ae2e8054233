import itertools as it, operator as op, functools as ft
from collections import namedtuple, defaultdict
from pathlib import Path
import os, csv, datetime

import pytz

from . import utils as u, types as t


log = u.get_logger('tp.gtfs')


def get_timezone(tz):
	if tz is None or isinstance(tz, datetime.tzinfo): return tz
	return pytz.timezone(tz)

def dt_adjust(dt, d=0, h=0, m=0, s=0, subtract=False):
	'''Apply timedelta objects in a sensible manner,
			where adding N days only adjusts date, never time.
		Note that in general: "dt - delta != dt + (-delta)",
			hence `subtract` and negative values are only allowed in `d`.'''
	if h == m == s == 0: # adding days should only adjust date, not time
		if d == 0: return dt
		if d < 0:
			assert not subtract, [d, subtract]
			d, subtract = -d, True
		dt = (dt + datetime.timedelta(d)) if not subtract else (dt - datetime.timedelta(d))
		return dt.tzinfo.localize(dt.replace(tzinfo=None))
	else:
		assert not d, 'Adjusting both date by days= and time - probably a bug'
		assert h >= 0 and m >= 0 and s >= 0
		delta = datetime.timedelta(hours=h, minutes=m, seconds=s)
		return dt.tzinfo.normalize((dt + delta) if not subtract else (dt - delta))

def dts_to_datetime(service_date, dts, timezone):
	'''Convert day-seconds on a service date to an aware datetime.
		GTFS times are measured from "noon minus 12h" of the service date,
			which is not midnight on days when daylight savings time changes occur.
		https://developers.google.com/transit/gtfs/reference/stop_times-file'''
	tz = get_timezone(timezone)
	dt = tz.localize(datetime.datetime.combine(service_date, datetime.time(12)))
	dt = dt_adjust(dt, h=12, subtract=True)
	days, dts = divmod(int(dts), 24 * 3600)
	if days: dt = dt_adjust(dt, d=days)
	return dt_adjust(dt, h=dts // 3600, m=(dts % 3600) // 60, s=dts % 60)

def datetime_to_dts(dt, timezone):
	'''Return (service_date, day-seconds) tuple for datetime in specified timezone.
		Naive datetimes are interpreted as local time in that timezone.'''
	tz = get_timezone(timezone)
	dt = tz.localize(dt) if dt.tzinfo is None else dt.astimezone(tz)
	return dt.date(), dt.hour * 3600 + dt.minute * 60 + dt.second


def iter_gtfs_tuples(gtfs_dir, filename, empty_if_missing=False):
	log.debug('Processing gtfs file: {}', filename)
	if filename.endswith('.txt'): filename = filename[:-4]
	tuple_t = ''.join(' '.join(filename.rstrip('s').split('_')).title().split())
	p = Path(gtfs_dir) / '{}.txt'.format(filename)
	if empty_if_missing and not os.access(str(p), os.R_OK): return
	with p.open(encoding='utf-8-sig') as src:
		src_csv = csv.reader(src)
		fields = list(v.strip() for v in next(src_csv))
		tuple_t = namedtuple(tuple_t, fields)
		for line in src_csv:
			if not line: continue
			try: yield tuple_t(*line)
			except TypeError:
				log.debug('Skipping bogus CSV line (file: {}): {!r}', p, line)

def _opt(s, k, default=None):
	v = getattr(s, k, None)
	return default if v is None or v == '' else v

def read_records(gtfs_dir):
	'''Read GTFS text files from directory into
		records mapping, as accepted by store.load().'''
	records = defaultdict(list)
	gtfs_dir = Path(gtfs_dir)

	for s in iter_gtfs_tuples(gtfs_dir, 'agency', empty_if_missing=True):
		records['agencies'].append(t.gtfs.Agency(
			_opt(s, 'agency_id', s.agency_name), s.agency_name,
			_opt(s, 'agency_url'), _opt(s, 'agency_timezone') ))

	for s in iter_gtfs_tuples(gtfs_dir, 'routes'):
		records['routes'].append(t.gtfs.Route(
			s.route_id, _opt(s, 'agency_id'),
			_opt(s, 'route_short_name', ''), _opt(s, 'route_long_name', ''),
			int(s.route_type), _opt(s, 'route_color') ))

	for s in iter_gtfs_tuples(gtfs_dir, 'stops'):
		if _opt(s, 'location_type', '0') not in ['0', '1']: continue # entrances, nodes, etc
		records['stops'].append(t.gtfs.Stop(
			s.stop_id, s.stop_name, s.stop_lat, s.stop_lon,
			_opt(s, 'wheelchair_boarding', '0') == '1' ))

	for s in iter_gtfs_tuples(gtfs_dir, 'trips'):
		records['trips'].append(t.gtfs.Trip(
			s.trip_id, s.route_id, s.service_id, _opt(s, 'trip_headsign'),
			_opt(s, 'wheelchair_accessible', '0') != '2' ))

	for s in iter_gtfs_tuples(gtfs_dir, 'stop_times'):
		records['stop_times'].append(t.gtfs.StopTime(
			s.trip_id, s.stop_id, s.stop_sequence,
			_opt(s, 'arrival_time'), _opt(s, 'departure_time') ))

	for s in iter_gtfs_tuples(gtfs_dir, 'calendar', empty_if_missing=True):
		weekdays = list(int(getattr(s, k)) for k in t.gtfs.weekday_columns)
		records['calendar'].append(t.gtfs.ServiceCalendar(
			s.service_id, weekdays, s.start_date, s.end_date ))

	for s in iter_gtfs_tuples(gtfs_dir, 'calendar_dates', empty_if_missing=True):
		records['calendar_dates'].append(
			t.gtfs.CalendarDate(s.service_id, s.date, s.exception_type) )

	for s in iter_gtfs_tuples(gtfs_dir, 'fare_attributes', empty_if_missing=True):
		records['fare_attributes'].append(t.gtfs.FareAttribute(
			s.fare_id, s.price, _opt(s, 'currency_type', 'JPY'),
			_opt(s, 'transfers'), _opt(s, 'transfer_duration') ))

	for s in iter_gtfs_tuples(gtfs_dir, 'fare_rules', empty_if_missing=True):
		if not _opt(s, 'route_id'): continue # zone-based rules are not supported
		records['fare_rules'].append(t.gtfs.FareRule(s.fare_id, s.route_id))

	log.debug( 'Read GTFS records: {}', ', '.join(
		'{}={:,}'.format(k, len(v)) for k, v in sorted(records.items()) ) )
	return dict(records)
