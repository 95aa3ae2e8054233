#!/usr/bin/env python3

import itertools as it, operator as op, functools as ft
import sys, datetime, json, argparse

import transit_planner as tp


def parse_point(val):
	try: lat, lon = map(float, val.split(','))
	except ValueError:
		raise argparse.ArgumentTypeError('Point must be specified as LAT,LON: {!r}'.format(val))
	return tp.Point(lat, lon)

def parse_datetime(val):
	for fmt in '%Y-%m-%d %H:%M:%S', '%Y-%m-%d %H:%M', '%Y-%m-%dT%H:%M:%S', '%Y-%m-%dT%H:%M':
		try: return datetime.datetime.strptime(val.strip(), fmt)
		except ValueError: pass
	raise argparse.ArgumentTypeError('Unrecognized date/time value: {!r}'.format(val))


def main(args=None):
	conf, conf_engine, conf_fares =\
		tp.PlannerConf(), tp.EngineConf(), tp.FareConf()

	parser = argparse.ArgumentParser(
		description='Plan public transit itineraries from GTFS schedule data.')
	parser.add_argument('gtfs_dir_or_pickle',
		help='Path to gtfs data directory to load'
			' schedule from or a pickled snapshot (if points to a file).')

	group = parser.add_argument_group('Schedule data options')
	group.add_argument('--cache-snapshot', metavar='path',
		help='Store loaded schedule snapshot (in pickle format) to specified file.'
			' This file can then be used in place of gtfs dir, and should load much faster.')
	group.add_argument('--realtime-json', metavar='path',
		help='JSON (or YAML) file with realtime data to apply to planned itineraries.'
			' Should contain either a list of trip updates or'
				' a mapping with "trip_updates" and "alerts" lists.'
			' Trip update example: {"trip_id": "T1", "delay_seconds": 120, "status": "delayed"}')

	group = parser.add_argument_group('Misc/debug options')
	group.add_argument('--engine-conf', metavar='yaml-data',
		help='Override values for EngineConf as a YAML mapping.'
			' Example: {max_expansions: 20000, transfer_radius: 500}')
	group.add_argument('--planner-conf', metavar='yaml-data',
		help='Override values for PlannerConf as a YAML mapping.'
			' Example: {walk_radius: 1000, timezone: Asia/Tokyo}')
	group.add_argument('--fare-conf', metavar='yaml-data',
		help='Override values for FareConf as a YAML mapping.'
			' Example: {base_fare: 170, surcharges: {3: 0}}')
	group.add_argument('--debug', action='store_true', help='Verbose operation mode.')

	cmds = parser.add_subparsers(title='Commands', dest='call')


	cmd = cmds.add_parser('plan',
		help='Plan trip between two points, output ranked itineraries.')

	group = cmd.add_argument_group('Query parameters')
	group.add_argument('origin', type=parse_point, help='Origin point as LAT,LON. Example: 35.6896,139.7006')
	group.add_argument('destination', type=parse_point, help='Destination point as LAT,LON.')
	group.add_argument('-t', '--time', type=parse_datetime, metavar='datetime',
		help='Departure (or arrival, with --arrive-by) date/time,'
			' as "YYYY-MM-DD HH:MM[:SS]" in agency timezone. Default: current time.')
	group.add_argument('-a', '--arrive-by', action='store_true',
		help='Treat --time as latest arrival time, not departure.')

	group = cmd.add_argument_group('Preferences')
	group.add_argument('-o', '--optimize',
		choices=list(v.value for v in tp.Optimize), default='time',
		help='Criterion to rank results by. Default: %(default)s')
	group.add_argument('-m', '--max-transfers', type=int, metavar='n', default=3,
		help='Max number of transfers between trips in the results. Default: %(default)s')
	group.add_argument('--wheelchair', action='store_true',
		help='Only use wheelchair-accessible stops and trips.')
	group.add_argument('--modes', nargs='+', metavar='mode',
		choices=list(v.value for v in tp.t.gtfs.Mode),
		help='Transit modes to use. Default: all of them.')
	group.add_argument('-n', '--max-routes', type=int, metavar='n', default=5,
		help='Max number of itineraries to output. Default: %(default)s')
	group.add_argument('-r', '--walk-radius', type=float, metavar='meters',
		help='Max walking distance to/from stops. Default: {}'.format(conf.walk_radius))
	group.add_argument('--json', action='store_true',
		help='Output itineraries as JSON list instead of human-readable text.')


	cmd = cmds.add_parser('stops',
		help='Find stops by (part of) their name.')
	cmd.add_argument('query', help='Name substring to match, case-insensitive.')
	cmd.add_argument('--near', type=parse_point, metavar='LAT,LON',
		help='Only return stops within --radius of that point, ordered by distance.')
	cmd.add_argument('-r', '--radius', type=float, metavar='meters', default=1000,
		help='Distance limit for --near option. Default: %(default)s')
	cmd.add_argument('-n', '--limit', type=int, metavar='n', default=20,
		help='Max number of stops to list. Default: %(default)s')


	cmd = cmds.add_parser('schedule',
		help='List departures from a stop on specified day.')
	cmd.add_argument('stop_id', help='Stop ID to list schedule for.')
	cmd.add_argument('-d', '--day', metavar='YYYYMMDD',
		help='Service date to list trips for. Default: today in agency timezone.')


	opts = parser.parse_args(sys.argv[1:] if args is None else args)

	tp.u.logging.basicConfig(
		format='%(asctime)s :: %(name)s %(levelname)s :: %(message)s',
		datefmt='%Y-%m-%d %H:%M:%S',
		level=tp.u.logging.DEBUG if opts.debug else tp.u.logging.WARNING )

	for c, c_opts in [
			(conf_engine, opts.engine_conf),
			(conf, opts.planner_conf), (conf_fares, opts.fare_conf) ]:
		if not c_opts: continue
		import yaml
		try: tp.u.conf_update(c, yaml.safe_load(c_opts))
		except KeyError as err: parser.error(err.args[0])

	planner = tp.init_planner(
		opts.gtfs_dir_or_pickle, opts.cache_snapshot, conf=conf,
		conf_engine=conf_engine, conf_fares=conf_fares, timer_func=tp.calc_timer )

	if opts.realtime_json:
		import yaml
		with open(opts.realtime_json) as src: data = yaml.safe_load(src)
		if isinstance(data, dict): planner.ingest_realtime(data.get('trip_updates'), data.get('alerts'))
		else: planner.ingest_realtime(data)

	tz = planner.snapshot.timezone

	if opts.call == 'plan':
		plan_opts = dict(
			optimize=opts.optimize, max_transfers=opts.max_transfers,
			wheelchair=opts.wheelchair, modes=opts.modes,
			max_routes=opts.max_routes, walk_radius=opts.walk_radius )
		if opts.time: plan_opts['arrival_time' if opts.arrive_by else 'departure_time'] = opts.time
		elif opts.arrive_by: parser.error('--arrive-by requires --time option')
		try: itineraries = planner.plan_trip(opts.origin, opts.destination, plan_opts)
		except tp.InputError as err: parser.error(str(err))
		if opts.json:
			json.dump(list(itin.as_dict(tz) for itin in itineraries), sys.stdout, indent=2)
			sys.stdout.write('\n')
		elif not itineraries: print('No routes found')
		else:
			for n, itin in enumerate(itineraries, 1):
				dts_format = lambda dts, itin=itin:\
					tp.gtfs.dts_to_datetime(itin.service_date, dts, tz).strftime('%H:%M:%S')
				if n > 1: print()
				print('{}.'.format(n), end=' ')
				itin.pretty_print(dts_format)

	elif opts.call == 'stops':
		lat, lon = (opts.near.lat, opts.near.lon) if opts.near else (None, None)
		for stop in planner.search_stops(opts.query, lat, lon, opts.radius, opts.limit):
			print('{} :: {} ({:.5f}, {:.5f}){}'.format( stop.id,
				stop.name, stop.lat, stop.lon, ' [wheelchair]' if stop.wheelchair else '' ))

	elif opts.call == 'schedule':
		day = tp.t.gtfs.parse_date(opts.day) if opts.day\
			else datetime.datetime.now(datetime.timezone.utc).astimezone(tz).date()
		try: schedule = planner.stop_schedule(opts.stop_id, day)
		except tp.InputError as err: parser.error(str(err))
		for e in schedule:
			print('{} {} [{}:{}]{}'.format(
				tp.u.dts_format(e.dts_dep), e.route.mode.value, e.route.name, e.trip.id,
				' to {}'.format(e.trip.headsign) if e.trip.headsign else '' ))

	else: parser.error('Action not implemented: {}'.format(opts.call))

if __name__ == '__main__': sys.exit(main())
