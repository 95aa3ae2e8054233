import itertools as it, operator as op, functools as ft
import time

import attr

from . import utils as u, types as t, locator


@u.attr_struct(vals_to_attrs=True)
class EngineConf:
	walking_speed = 1.4 # m/s
	transfer_radius = 800 # meters, max walking distance between stops
	max_expansions = 10000 # per search between one origin/destination stop pair
	max_search_time = 5.0 # seconds, per search, None or 0 - no limit
	max_wait = 3600 # seconds, only departures within that time from arrival are considered
	origin_candidates = 3
	dest_candidates = 3


def timer(self_or_func, func=None, *args, **kws):
	'Calculation call wrapper for timer/progress logging.'
	if not func: return lambda s,*a,**k: s.timer_wrapper(self_or_func, s, *a, **k)
	return self_or_func.timer_wrapper(func, *args, **kws)


class RoutePlanner:
	'''A* search over stops, with edges being
			trip rides between any two stops of a trip and walks to nearby stops.
		Search is single-criterion (arrival time), and stops are closed on first visit,
			so results are not guaranteed to be optimal wrt transfers or fares,
			which are only checked after path is built.'''

	def __init__(self, snapshot, conf=None, timer_func=None, clock=time.monotonic):
		self.snapshot, self.clock = snapshot, clock
		self.conf, self.log = conf or EngineConf(), u.get_logger('tp.engine')
		self.timer_wrapper = timer_func if timer_func else lambda f,*a,**k: f(*a,**k)
		self.locator = locator.StopLocator(snapshot, self.conf.walking_speed)

	@timer
	def plan(self, origin, destination, origin_stops, dest_stops, service_date, dts_start, opts):
		'''Run searches for bounded number of origin x destination stop pairs,
				returning list of itineraries, unique by sequence of trips they use.
			origin_stops/dest_stops are lists of NearbyStop, closest first.
			opts must be a validated PlanOptions.'''
		itineraries, trip_seqs, walk_cache = list(), set(), dict()
		pairs = it.product(
			origin_stops[:self.conf.origin_candidates], dest_stops[:self.conf.dest_candidates] )
		for src, dst in pairs:
			if src.stop.id == dst.stop.id: continue
			label = self.search(src, dst, service_date, dts_start, opts, walk_cache)
			if not label: continue
			itin = self.build_itinerary(origin, destination, src, dst, label, service_date)
			if not itin:
				self.log.debug('Walk-only path between stops, discarded: {} -> {}', src.stop, dst.stop)
				continue
			if itin.transfers > opts.max_transfers:
				self.log.debug( 'Path with too many transfers'
					' ({} > {}), discarded: {}', itin.transfers, opts.max_transfers, itin )
				continue
			if itin.trip_ids in trip_seqs: continue
			trip_seqs.add(itin.trip_ids)
			itineraries.append(itin)
		self.log.debug('Found {} itinerar(y/ies) for {} -> {}', len(itineraries), origin, destination)
		return itineraries

	def search(self, src, dst, service_date, dts_start, opts, walk_cache=None):
		'''A* search from src to dst stop (both NearbyStop),
				starting at dts_start from the origin point.
			Returns Label for dst stop, or None if it was not reached within search budget.'''
		conf, stops = self.conf, self.snapshot.stops
		if walk_cache is None: walk_cache = dict()
		goal, h_cache = dst.stop, dict()

		def heuristic(stop_id):
			# Overestimates wherever transit is faster than walking, only biases search towards goal
			h = h_cache.get(stop_id)
			if h is None:
				stop = stops[stop_id]
				h = h_cache[stop_id] = u.haversine(
					stop.lat, stop.lon, goal.lat, goal.lon ) / conf.walking_speed
			return h

		seq, queue, closed = it.count(), t.internal.PrioQueue('f seq'), set()
		dts = dts_start + src.walking_time
		queue.push(t.internal.Label( src.stop.id, dts,
			g=dts - dts_start, f=dts - dts_start + heuristic(src.stop.id), seq=next(seq) ))

		expansions, ts0 = 0, self.clock()
		while queue:
			label = queue.pop()
			if label.stop_id in closed: continue
			if label.stop_id == goal.id: return label
			closed.add(label.stop_id)

			expansions += 1
			if expansions > conf.max_expansions:
				self.log.debug( 'Search expansion limit ({}) reached:'
					' {} -> {}', conf.max_expansions, src.stop, goal )
				return
			if conf.max_search_time and self.clock() - ts0 > conf.max_search_time:
				self.log.debug( 'Search time limit ({:.1f}s) reached:'
					' {} -> {}', conf.max_search_time, src.stop, goal )
				return

			edges = it.chain(
				self.transit_edges(label, service_date, opts),
				self.walk_edges(label, opts, walk_cache) )
			for edge in edges:
				if edge.stop_to in closed: continue
				transfers, trip_id = label.transfers, label.trip_id
				if not edge.is_walk:
					if trip_id and edge.trip_id != trip_id: transfers += 1
					trip_id = edge.trip_id
				g = edge.dts_arr - dts_start
				queue.push(t.internal.Label(
					edge.stop_to, edge.dts_arr, transfers, trip_id,
					g, g + heuristic(edge.stop_to), next(seq), label, edge ))

	def transit_edges(self, label, service_date, opts):
		'''Edges for riding trips departing from label stop to all their subsequent stops.
			Only earliest departure within max_wait is used for each (route, next stop) pair,
				as later trips of the same route/direction can only arrive later.'''
		snapshot, boarded = self.snapshot, set()
		deps = snapshot.trips_at_stop(
			label.stop_id, label.dts, service_date, until=label.dts + self.conf.max_wait )
		for dep in deps:
			trip = dep.trip
			if snapshot.routes[trip.route_id].mode not in opts.modes: continue
			if opts.wheelchair and not trip.wheelchair: continue
			trip_stops = snapshot.trip_stops(trip.id)
			key = trip.route_id, trip_stops[dep.stopidx + 1].stop_id
			if key in boarded: continue
			boarded.add(key)
			ts_a = trip_stops[dep.stopidx]
			for ts_b in trip_stops[dep.stopidx + 1:]:
				if opts.wheelchair and not snapshot.stops[ts_b.stop_id].wheelchair: continue
				yield t.internal.Edge(
					label.stop_id, ts_b.stop_id, dep.dts_dep, ts_b.dts_arr + dep.day_offset,
					ts_b.dist - ts_a.dist, trip.id, ts_a.stopidx, ts_b.stopidx )

	def walk_edges(self, label, opts, walk_cache):
		'Footpath edges to nearby stops, never two walks in a row.'
		if label.edge and label.edge.is_walk: return
		key = label.stop_id, opts.wheelchair
		nearby = walk_cache.get(key)
		if nearby is None:
			stop = self.snapshot.stops[label.stop_id]
			nearby = walk_cache[key] = self.locator.nearby(
				stop.lat, stop.lon, self.conf.transfer_radius, wheelchair=opts.wheelchair )
		for ns in nearby:
			if ns.stop.id == label.stop_id: continue
			yield t.internal.Edge(
				label.stop_id, ns.stop.id, label.dts, label.dts + ns.walking_time, ns.distance )

	def build_itinerary(self, origin, destination, src, dst, label, service_date):
		'''Build Itinerary from search result label, adding walks from origin and to destination.
			Consecutive edges of the same trip are merged into one leg,
				and walks before first trip are shifted to end right at its departure.
			Returns None for paths without any transit legs.'''
		snapshot, legs = self.snapshot, list()
		for edge in label.path():
			stop_from, stop_to = snapshot.stops[edge.stop_from], snapshot.stops[edge.stop_to]
			if edge.is_walk:
				legs.append(t.public.Leg( t.public.LegType.walk,
					stop_from, stop_to, edge.dts_dep, edge.dts_arr, edge.distance ))
				continue
			stop_count = edge.stopidx_b - edge.stopidx_a
			if legs and legs[-1].trip_id == edge.trip_id:
				leg = legs[-1]
				legs[-1] = attr.evolve( leg, dst=stop_to, dts_arr=edge.dts_arr,
					distance=leg.distance + edge.distance, stop_count=leg.stop_count + stop_count )
				continue
			trip = snapshot.trips[edge.trip_id]
			route = snapshot.routes[trip.route_id]
			legs.append(t.public.Leg( t.public.LegType.transit,
				stop_from, stop_to, edge.dts_dep, edge.dts_arr, edge.distance,
				route.id, trip.id, trip.headsign, route.mode, stop_count ))

		n_first = next(( n for n, leg in enumerate(legs)
			if leg.type is t.public.LegType.transit ), None)
		if n_first is None: return

		dts = legs[n_first].dts_dep
		for n in range(n_first - 1, -1, -1):
			leg = legs[n]
			legs[n] = attr.evolve(leg, dts_dep=dts - leg.duration, dts_arr=dts)
			dts = legs[n].dts_dep
		if src.distance > 0:
			legs.insert(0, t.public.Leg( t.public.LegType.walk,
				origin, src.stop, dts - src.walking_time, dts, src.distance ))
		if dst.distance > 0:
			dts = legs[-1].dts_arr
			legs.append(t.public.Leg( t.public.LegType.walk,
				dst.stop, destination, dts, dts + dst.walking_time, dst.distance ))
		return t.public.Itinerary(tuple(legs), service_date)
