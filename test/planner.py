import itertools as it, operator as op, functools as ft
from pathlib import Path
import unittest, tempfile, datetime

from . import _common as c


tp = c.tp


class PlanScenarioTests(unittest.TestCase):

	@classmethod
	def setUpClass(cls): cls.planner = c.tokyo.planner()

	def plan(self, name, data):
		src, dst = map(c.tokyo.point, data['route'])
		opts = dict(data.get('options') or dict())
		opts['arrival_time' if data.get('arrive_by') else 'departure_time'] = c.dt(data['time'])
		return self.planner.plan_trip(src, dst, opts)

	def test_scenarios(self):
		for name, data in c.tokyo.scenarios.items():
			with self.subTest(scenario=name):
				itins = self.plan(name, data)
				self.assertEqual(list(list(itin.trip_ids) for itin in itins), data['trips'])
				for k, func in [
						('duration', op.attrgetter('total_duration')),
						('transfers', op.attrgetter('transfers')) ]:
					if k not in data: continue
					self.assertEqual(list(map(func, itins)), data[k])
				for itin in itins:
					self.assertTrue(itin.fare and itin.fare.total >= 150)
					self.assertFalse(itin.has_realtime)
					for leg_a, leg_b in zip(itin.legs, itin.legs[1:]):
						self.assertLessEqual(leg_a.dts_arr, leg_b.dts_dep)

	def test_deterministic(self):
		data = c.tokyo.scenarios['train_and_subway']
		results = list(
			list(itin.as_dict(c.tz_tokyo) for itin in self.plan('train_and_subway', data))
			for n in range(3) )
		self.assertEqual(results[0], results[1])
		self.assertEqual(results[0], results[2])

	def test_result_dict(self):
		itin, = self.plan('late_train_past_midnight', c.tokyo.scenarios['late_train_past_midnight'])
		info = itin.as_dict(c.tz_tokyo)
		leg, = info['legs']
		self.assertEqual(leg['depart'], '2024-06-03T23:58:00+09:00')
		self.assertEqual(leg['arrive'], '2024-06-04T00:05:00+09:00')
		self.assertEqual(
			(leg['type'], leg['mode'], leg['trip_id'], leg['stops'], leg['from']['stop_id']),
			('transit', 'train', 'Y2358', 2, 'JR_SHINJUKU') )
		self.assertEqual(
			(info['total_duration'], info['transfers'], info['has_realtime'], info['service_date']),
			(420, 0, False, '2024-06-03') )
		self.assertEqual(info['fare']['total'], 310)
		self.assertEqual(info['fare']['breakdown'][0]['route_id'], 'JR_YAMANOTE')
		self.assertEqual(itin.as_dict()['legs'][0]['arrive'], 86700)

	def test_fare(self):
		itin, = self.plan('train_and_subway', c.tokyo.scenarios['train_and_subway'])
		self.assertEqual(
			list(item.route_id for item in itin.fare.breakdown), ['JR_YAMANOTE', 'METRO_GINZA'] )
		self.assertEqual(itin.fare.breakdown[0].fare, 310)
		self.assertEqual(itin.fare.total, sum(item.fare for item in itin.fare.breakdown))
		self.assertEqual(itin.fare.currency, 'JPY')

	def test_aware_datetime(self):
		dt = datetime.datetime(2024, 6, 2, 22, 55, tzinfo=datetime.timezone.utc)
		itin, = self.planner.plan_trip(
			c.tokyo.point('shinjuku'), c.tokyo.point('shibuya'), dict(departure_time=dt) )
		self.assertEqual(itin.trip_ids, ('Y0800',))

	def test_options(self):
		src, dst = c.tokyo.point('shinjuku'), c.tokyo.point('shibuya')
		opts = tp.PlanOptions(departure_time=c.dt('2024-06-03 07:55'), max_routes=50)
		self.assertEqual(len(self.planner.plan_trip(src, dst, opts)), 1)
		self.assertEqual(opts.max_routes, 50) # passed options are not modified
		itins = self.planner.plan_trip(
			dict(lat=src[0], lng=src[1]), tp.Point(*dst, name='Shibuya'),
			dict(departure_time=c.dt('2024-06-03 07:55'), optimize='cost') )
		self.assertEqual(itins[0].legs[-1].dst.name, 'Shibuya')

	def test_walk_radius(self):
		# ~200m from Shinjuku stop
		src, dst = (35.6914, 139.7006), c.tokyo.point('shibuya')
		opts = dict(departure_time=c.dt('2024-06-03 07:55'))
		itin, = self.planner.plan_trip(src, dst, opts)
		self.assertEqual(itin.legs[0].type, tp.t.public.LegType.walk)
		self.assertEqual(self.planner.plan_trip(src, dst, dict(opts, walk_radius=100)), [])

	def test_input_errors(self):
		shinjuku, shibuya = c.tokyo.point('shinjuku'), c.tokyo.point('shibuya')
		dep = dict(departure_time=c.dt('2024-06-03 07:55'))
		for src, dst, opts in [
				((91, 0), shibuya, dep),
				(shinjuku, (35.0, 181), dep),
				((float('nan'), 0), shibuya, dep),
				(('35.6', '139.7'), shibuya, dep),
				('Shinjuku', shibuya, dep),
				(dict(lat=35.6), shibuya, dep),
				(shinjuku, shinjuku, dep),
				(shinjuku, (35.68965, 139.7006), dep),
				(shinjuku, shibuya, dict(dep, optimize='beauty')),
				(shinjuku, shibuya, dict(dep, max_transfers=6)),
				(shinjuku, shibuya, dict(dep, max_transfers=-1)),
				(shinjuku, shibuya, dict(dep, max_routes=0)),
				(shinjuku, shibuya, dict(dep, modes=['hovercraft'])),
				(shinjuku, shibuya, dict(dep, modes=[])),
				(shinjuku, shibuya, dict(dep, walk_radius=-5)),
				(shinjuku, shibuya, dict(dep, arrival_time=c.dt('2024-06-03 09:00'))),
				(shinjuku, shibuya, dict(departure_time='2024-06-03 07:55')),
				(shinjuku, shibuya, dict(dep, colour='red')),
				(shinjuku, shibuya, ['time']) ]:
			with self.subTest(src=src, dst=dst, opts=opts):
				with self.assertRaises(tp.InputError): self.planner.plan_trip(src, dst, opts)

	def test_no_data(self):
		with self.assertRaises(tp.PlannerError) as ctx:
			tp.Planner().plan_trip(c.tokyo.point('shinjuku'), c.tokyo.point('shibuya'))
		self.assertNotIsInstance(ctx.exception, tp.InputError)

	def test_search_stops(self):
		self.assertEqual(
			list(stop.id for stop in self.planner.search_stops('shibuya', *c.tokyo.point('shibuya'))),
			['JR_SHIBUYA', 'METRO_SHIBUYA'] )

	def test_stop_schedule(self):
		schedule = self.planner.stop_schedule('METRO_OMOTESANDO', datetime.date(2024, 6, 3))
		self.assertEqual(list(e.trip.id for e in schedule), ['G0815', 'B0802'])
		with self.assertRaises(tp.InputError):
			self.planner.stop_schedule('NO_SUCH_STOP', datetime.date(2024, 6, 3))


class PlanRealtimeTests(unittest.TestCase):

	def setUp(self):
		self.ts = 1717400000.0
		self.planner = c.tokyo.planner(
			overlay=tp.realtime.RealtimeOverlay(clock=lambda: self.ts) )
		self.request = ( c.tokyo.point('shinjuku'),
			c.tokyo.point('shibuya'), dict(departure_time=c.dt('2024-06-03 07:55')) )

	def test_delay(self):
		self.planner.ingest_realtime(
			[dict(trip_id='Y0800', delay_seconds=120)],
			[dict(id='A1', title='Crowded', route_ids=['JR_YAMANOTE'])] )
		itin, = self.planner.plan_trip(*self.request)
		self.assertTrue(itin.has_realtime)
		self.assertEqual(itin.legs[0].delay, 120)
		self.assertEqual(itin.total_duration, 420)
		self.assertEqual(itin.fare.total, 310)
		info = itin.as_dict(c.tz_tokyo)
		self.assertEqual(info['legs'][0]['realtime_arrive'], '2024-06-03T08:09:00+09:00')
		self.assertEqual(info['legs'][0]['status'], 'delayed')
		self.assertEqual(info['alerts'][0]['id'], 'A1')

	def test_stale(self):
		self.planner.ingest_realtime([dict(trip_id='Y0800', delay_seconds=120)])
		itin, = self.planner.plan_trip(*self.request, now=self.ts + 121)
		self.assertFalse(itin.has_realtime)
		self.assertIsNone(itin.legs[0].delay)
		self.ts += 60
		itin, = self.planner.plan_trip(*self.request)
		self.assertTrue(itin.has_realtime)

	def test_refresher(self):
		refresher = self.planner.realtime_refresher(
			lambda: [dict(trip_id='Y0800', delay=30)] )
		self.assertEqual(refresher.interval, 30)
		self.assertTrue(refresher.tick())
		itin, = self.planner.plan_trip(*self.request)
		self.assertEqual(itin.legs[0].delay, 30)


class InitPlannerTests(unittest.TestCase):

	gtfs_files = dict(
		agency=[
			'agency_id,agency_name,agency_url,agency_timezone',
			'JR_EAST,JR East,https://www.jreast.co.jp,Asia/Tokyo' ],
		routes=[
			'route_id,agency_id,route_short_name,route_long_name,route_type',
			'JR_YAMANOTE,JR_EAST,JY,Yamanote Line,2' ],
		stops=[
			'stop_id,stop_name,stop_lat,stop_lon,location_type,wheelchair_boarding',
			'JR_SHINJUKU,Shinjuku,35.6896,139.7006,0,1',
			'JR_SHINJUKU_E1,Shinjuku East Exit,35.6905,139.7010,2,',
			'JR_SHIBUYA,Shibuya,35.6580,139.7016,0,1' ],
		trips=[
			'route_id,service_id,trip_id,trip_headsign',
			'JR_YAMANOTE,WEEKDAY,Y0800,Shinagawa' ],
		stop_times=[
			'trip_id,arrival_time,departure_time,stop_id,stop_sequence',
			'Y0800,08:00:00,08:00:00,JR_SHINJUKU,1',
			'Y0800,08:07:00,08:07:00,JR_SHIBUYA,2' ],
		calendar=[
			'service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date',
			'WEEKDAY,1,1,1,1,1,0,0,20240101,20241231' ] )

	def setUp(self):
		self.tmp_dir = tempfile.TemporaryDirectory(prefix='tp-test.')
		self.gtfs_dir = Path(self.tmp_dir.name) / 'gtfs'
		self.gtfs_dir.mkdir()
		for name, lines in self.gtfs_files.items():
			(self.gtfs_dir / '{}.txt'.format(name)).write_text('\n'.join(lines) + '\n')

	def tearDown(self): self.tmp_dir.cleanup()

	def check_planner(self, planner):
		self.assertEqual(str(planner.snapshot.timezone), 'Asia/Tokyo')
		self.assertEqual(sorted(planner.snapshot.stops), ['JR_SHIBUYA', 'JR_SHINJUKU'])
		itin, = planner.plan_trip(
			c.tokyo.point('shinjuku'), c.tokyo.point('shibuya'),
			dict(departure_time=c.dt('2024-06-03 07:55')) )
		self.assertEqual((itin.trip_ids, itin.total_duration), (('Y0800',), 420))

	def test_gtfs_dir(self):
		snapshot_path = Path(self.tmp_dir.name) / 'snapshot.pickle'
		planner = tp.init_planner(self.gtfs_dir, snapshot_path, timer_func=tp.calc_timer)
		self.check_planner(planner)
		self.assertTrue(snapshot_path.exists())
		self.check_planner(tp.init_planner(snapshot_path))

	def test_load_dir(self):
		planner = tp.Planner()
		planner.load_dir(self.gtfs_dir)
		self.check_planner(planner)
		(self.gtfs_dir / 'stop_times.txt').write_text(
			'trip_id,arrival_time,departure_time,stop_id,stop_sequence\n'
			'Y0800,08:00:00,08:00:00,JR_SHINJUKU,1\n'
			'Y0800,08:07:00,08:07:00,JR_IKEBUKURO,2\n' )
		with self.assertRaises(tp.DataError): planner.load_dir(self.gtfs_dir)
		self.check_planner(planner)
