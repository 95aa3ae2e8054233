import itertools as it, operator as op, functools as ft
import unittest, datetime, pickle

from . import _common as c


tp = c.tp
monday, tuesday = datetime.date(2024, 6, 3), datetime.date(2024, 6, 4)


class StoreLoadTests(unittest.TestCase):

	def test_load(self):
		snapshot = c.tokyo.snapshot()
		self.assertEqual(snapshot.stat_counts(), dict(
			agencies=3, routes=3, stops=6, trips=5, stop_times=15, services=1 ))
		self.assertEqual(snapshot.get_stop('JR_SHIBUYA').name, 'Shibuya')
		self.assertIsNone(snapshot.get_stop('NO_SUCH_STOP'))
		self.assertEqual(snapshot.get_trip('G0815').wheelchair, False)
		self.assertEqual(snapshot.get_agency('TOEI').url, None)
		self.assertEqual(snapshot.route_mode('METRO_GINZA'), tp.t.gtfs.Mode.subway)
		self.assertEqual(str(snapshot.timezone), 'Asia/Tokyo')

	def test_load_dicts(self):
		snapshot = tp.store.load(dict(
			stops=[dict(id='A', name='A', lat='1.5', lon=2), ('B', 'B', 0, 0, True)] ))
		self.assertEqual(snapshot.stops['A'].lat, 1.5)
		self.assertTrue(snapshot.stops['B'].wheelchair)
		self.assertEqual(str(snapshot.timezone), 'UTC')

	def test_missing_times_filled(self):
		ts_first, ts_mid, ts_last = c.tokyo.snapshot().trip_stops('B0802')
		self.assertEqual((ts_first.dts_arr, ts_first.dts_dep), (8*3600 + 120, 8*3600 + 120))
		self.assertEqual((ts_last.dts_arr, ts_last.dts_dep), (8*3600 + 45*60, 8*3600 + 45*60))
		self.assertEqual([ts.stopidx for ts in [ts_first, ts_mid, ts_last]], [0, 1, 2])

	def test_cumulative_distances(self):
		tss = c.tokyo.snapshot().trip_stops('Y0800')
		self.assertEqual(tss[0].dist, 0)
		self.assertAlmostEqual(tss[1].dist, 2165, delta=10)
		self.assertAlmostEqual(tss[2].dist, 2165 + 1360, delta=20)

	def assert_data_error(self, records, msg_part):
		with self.assertRaises(tp.DataError) as ctx: tp.store.load(records)
		self.assertIn(msg_part, str(ctx.exception))

	def test_bad_references(self):
		records = c.tokyo.records()
		records['trips'].append(['X1', 'NO_ROUTE', 'WEEKDAY'])
		self.assert_data_error(records, 'unknown route')

		records = c.tokyo.records()
		records['trips'].append(['X1', 'JR_YAMANOTE', 'NO_SERVICE'])
		self.assert_data_error(records, 'unknown service')

		records = c.tokyo.records()
		records['stop_times'].append(['Y0800', 'NO_STOP', 4, '08:10:00', '08:10:00'])
		self.assert_data_error(records, 'unknown stop')

		records = c.tokyo.records()
		records['stop_times'].append(['NO_TRIP', 'JR_SHIBUYA', 1, '08:10:00', '08:10:00'])
		self.assert_data_error(records, 'unknown trip')

		records = c.tokyo.records()
		records['routes'].append(['X', 'NO_AGENCY', 'X', 'X', 3])
		self.assert_data_error(records, 'unknown agency')

		records = c.tokyo.records()
		records['fare_rules'].append(['NO_FARE', 'JR_YAMANOTE'])
		self.assert_data_error(records, 'unknown fare')

	def test_bad_values(self):
		records = c.tokyo.records()
		records['stops'].append(['X', 'X', 91, 0])
		self.assert_data_error(records, 'out of range')

		records = c.tokyo.records()
		records['stops'].append(['JR_SHIBUYA', 'X', 0, 0])
		self.assert_data_error(records, 'Duplicate stop id')

		records = c.tokyo.records()
		records['stops'].append(['X', 'X', 'north', 0])
		self.assert_data_error(records, 'Malformed stops record')

		records = c.tokyo.records()
		records['stop_times'].append(['Y0800', 'METRO_GINZA', 3, '08:30:00', '08:30:00'])
		self.assert_data_error(records, 'Duplicate stop_sequence')

		records = c.tokyo.records()
		records['stop_times'].append(['Y0800', 'METRO_GINZA', 4, '08:06:00', '08:06:00'])
		self.assert_data_error(records, 'Time jumps backwards')

		records = c.tokyo.records()
		records['stop_times'].append(['Y0800', 'METRO_GINZA', 4, '08:20:00', '08:19:00'])
		self.assert_data_error(records, 'Time jumps backwards')

		records = c.tokyo.records()
		records['stop_times'].append(['Y0800', 'METRO_GINZA', 4, 'soon', None])
		self.assert_data_error(records, 'Malformed time value')

		records = c.tokyo.records()
		records['stop_times'].append(['Y0800', 'METRO_GINZA', 4, None, None])
		self.assert_data_error(records, 'Missing arrival/departure')

		records = c.tokyo.records()
		records['shapes'] = list()
		self.assert_data_error(records, 'Unknown record types')

	def test_store_swap(self):
		data_store = tp.store.Store()
		snapshot = data_store.load(c.tokyo.records())
		self.assertIs(data_store.snapshot, snapshot)

		records = c.tokyo.records()
		records['trips'].append(['X1', 'NO_ROUTE', 'WEEKDAY'])
		with self.assertRaises(tp.DataError): data_store.load(records)
		self.assertIs(data_store.snapshot, snapshot)

		records = c.tokyo.records()
		records['stops'].append(['EXTRA', 'Extra', 35.7, 139.7])
		snapshot_new = data_store.load(records)
		self.assertIsNot(snapshot_new, snapshot)
		self.assertIn('EXTRA', data_store.snapshot.stops)
		self.assertNotIn('EXTRA', snapshot.stops)

	def test_pickle(self):
		snapshot = c.tokyo.snapshot()
		snapshot.services_on(monday)
		snapshot = pickle.loads(pickle.dumps(snapshot))
		self.assertEqual(len(snapshot.stop_index), 6)
		self.assertEqual( [dep.trip.id for dep in
			snapshot.trips_at_stop('JR_SHINJUKU', 8*3600, monday)], ['Y0800', 'B0802', 'Y0810', 'Y2358'] )


class StoreQueryTests(unittest.TestCase):

	@classmethod
	def setUpClass(cls): cls.snapshot = c.tokyo.snapshot()

	def test_service_days(self):
		active = lambda *date: self.snapshot.service_active('WEEKDAY', datetime.date(*date))
		self.assertTrue(active(2024, 6, 3)) # monday
		self.assertFalse(active(2024, 6, 2)) # sunday
		self.assertFalse(active(2024, 6, 5)) # removed
		self.assertTrue(active(2024, 6, 8)) # added saturday
		self.assertFalse(active(2025, 1, 6)) # out of calendar range
		self.assertFalse(self.snapshot.service_active('NO_SERVICE', monday))

	def test_trips_at_stop(self):
		deps = self.snapshot.trips_at_stop('JR_SHINJUKU', 7*3600 + 55*60, monday)
		self.assertEqual(
			[(dep.trip.id, dep.dts_dep, dep.stopidx, dep.day_offset) for dep in deps],
			[ ('Y0800', 28800, 0, 0), ('B0802', 28920, 0, 0),
				('Y0810', 29400, 0, 0), ('Y2358', 86280, 0, 0) ] )
		deps = self.snapshot.trips_at_stop('JR_SHINJUKU', 28800, monday, until=29400)
		self.assertEqual([dep.trip.id for dep in deps], ['Y0800', 'B0802', 'Y0810'])
		# Last stops of trips have no departures
		self.assertEqual(self.snapshot.trips_at_stop('JR_SHIBUYA', 0, monday), [])
		self.assertEqual(self.snapshot.trips_at_stop('JR_SHINJUKU', 0, datetime.date(2024, 6, 2)), [])

	def test_trips_at_stop_previous_day(self):
		deps = self.snapshot.trips_at_stop('JR_HARAJUKU', 60, tuesday, until=3600)
		self.assertEqual(
			[(dep.trip.id, dep.dts_dep, dep.stopidx, dep.day_offset) for dep in deps],
			[('Y2358', 150, 1, -86400)] )

	def test_trips_at_stop_next_day(self):
		deps = self.snapshot.trips_at_stop('JR_SHINJUKU', 86300, monday, until=86400 + 8*3600 + 3*60)
		self.assertEqual(
			[(dep.trip.id, dep.dts_dep, dep.day_offset) for dep in deps],
			[('Y0800', 86400 + 28800, 86400), ('B0802', 86400 + 28920, 86400)] )

	def test_stop_schedule(self):
		schedule = self.snapshot.stop_schedule('JR_SHIBUYA', monday)
		self.assertEqual(
			[(e.trip.id, e.dts_arr, e.route.id) for e in schedule],
			[('Y0800', 29220, 'JR_YAMANOTE'), ('Y0810', 29820, 'JR_YAMANOTE'), ('Y2358', 86700, 'JR_YAMANOTE')] )
		self.assertEqual(self.snapshot.stop_schedule('JR_SHIBUYA', datetime.date(2024, 6, 5)), [])

	def test_search_routes(self):
		self.assertEqual(
			[r.id for r in self.snapshot.search_routes('line')], ['JR_YAMANOTE', 'METRO_GINZA'] )
		self.assertEqual([r.id for r in self.snapshot.search_routes(' jy')], ['JR_YAMANOTE'])
		self.assertEqual(self.snapshot.search_routes('monorail'), [])

	def test_fare_for_route(self):
		self.assertEqual(self.snapshot.fare_for_route('METRO_GINZA').price, 170)
		self.assertFalse(self.snapshot.fare_for_route('JR_YAMANOTE'))


class GTFSTimeTests(unittest.TestCase):

	def test_dts_conversion(self):
		self.assertEqual(
			tp.gtfs.datetime_to_dts(c.dt('2024-06-03 07:55'), c.tz_tokyo), (monday, 28500) )
		utc_dt = datetime.datetime(2024, 6, 2, 22, 55, tzinfo=datetime.timezone.utc)
		self.assertEqual(tp.gtfs.datetime_to_dts(utc_dt, c.tz_tokyo), (monday, 28500))
		self.assertEqual(
			tp.gtfs.dts_to_datetime(monday, 86700, c.tz_tokyo).isoformat(),
			'2024-06-04T00:05:00+09:00' )

	def test_dst_noon_minus_12h(self):
		# 2024-03-10 DST start in New York, service day starts at 23:00 of previous day
		tz = tp.gtfs.get_timezone('America/New_York')
		dt = tp.gtfs.dts_to_datetime(datetime.date(2024, 3, 10), 12 * 3600, tz)
		self.assertEqual(dt.isoformat(), '2024-03-10T12:00:00-04:00')
		dt = tp.gtfs.dts_to_datetime(datetime.date(2024, 3, 10), 0, tz)
		self.assertEqual(dt.isoformat(), '2024-03-09T23:00:00-05:00')
