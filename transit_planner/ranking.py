import itertools as it, operator as op, functools as ft

from . import types as t


Optimize = t.public.Optimize

def _fare_total(itin): return itin.fare.total if itin.fare else 0

rank_keys = {
	Optimize.time: lambda itin: itin.total_duration,
	Optimize.transfers: lambda itin: (itin.transfers, itin.total_duration),
	Optimize.cost: lambda itin: (_fare_total(itin), itin.total_duration) }


def rank(itineraries, optimize=Optimize.time, max_routes=5):
	'''Stable-sort itineraries by optimization criterion,
		returning at most max_routes (capped at max_routes_cap) of them.'''
	optimize = Optimize(getattr(optimize, 'value', optimize))
	max_routes = min(max_routes, t.public.max_routes_cap)
	return sorted(itineraries, key=rank_keys[optimize])[:max_routes]
