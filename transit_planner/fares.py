import itertools as it, operator as op, functools as ft
import math

import attr

from . import utils as u, types as t


RouteType = t.gtfs.RouteType

# Placeholder values, used for routes without fare_rules in schedule data
route_type_surcharges = {
	RouteType.tram: 50, RouteType.subway: 100, RouteType.rail: 80, RouteType.bus: 30 }


@u.attr_struct(vals_to_attrs=True)
class FareConf:
	base_fare = 150
	per_km_rate = 20 # per started km of leg distance
	currency = 'JPY'
	surcharges = None # {route_type: surcharge}, None - route_type_surcharges
	default_surcharge = 50


class FareCalculator:

	def __init__(self, snapshot, conf=None):
		self.snapshot, self.conf = snapshot, conf or FareConf()
		self.log = u.get_logger('tp.fares')

	def mode_surcharge(self, route_type):
		surcharges = self.conf.surcharges
		if surcharges is None: surcharges = route_type_surcharges
		if route_type is None: return self.conf.default_surcharge
		return surcharges.get(int(route_type), self.conf.default_surcharge)

	def leg_fare(self, leg, fare_attr=None):
		'''Returns (fare, currency) tuple for a transit leg:
				base + ceil(distance_km) * per_km_rate + route_type surcharge.
			Base fare and currency are taken from fare_attr, if specified.'''
		route = self.snapshot.get_route(leg.route_id)
		base, currency = self.conf.base_fare, self.conf.currency
		if fare_attr: base, currency = fare_attr.price, fare_attr.currency
		fare = ( base + math.ceil(leg.distance / 1000) * self.conf.per_km_rate
			+ self.mode_surcharge(route and route.route_type) )
		return fare, currency

	def itinerary_fare(self, itin):
		'''Sum of transit leg fares, with a breakdown item for each.
			Leg is free (fare_type=transfer) if it is covered by the same
				fare_id as the last paid leg, within its transfers/transfer_duration limits.'''
		breakdown, paid = list(), None # paid - (fare_attr, dts_dep, transfers_used)
		for n, leg in enumerate(itin.legs):
			if leg.type is not t.public.LegType.transit: continue
			route = self.snapshot.get_route(leg.route_id)
			fare_attr = self.snapshot.fare_for_route(leg.route_id)
			if paid and fare_attr and paid[0].fare_id == fare_attr.fare_id\
					and (fare_attr.transfers is None or paid[2] < fare_attr.transfers)\
					and ( fare_attr.transfer_duration is None
						or leg.dts_dep - paid[1] <= fare_attr.transfer_duration ):
				paid = paid[0], paid[1], paid[2] + 1
				fare, currency, fare_type = 0, fare_attr.currency, 'transfer'
			else:
				fare, currency = self.leg_fare(leg, fare_attr)
				fare_type, paid = 'regular', fare_attr and (fare_attr, leg.dts_dep, 0)
			breakdown.append(t.public.FareItem(
				n, leg.route_id, route.name if route else leg.route_id, fare, currency, fare_type ))
		currencies = set(item.currency for item in breakdown)
		if len(currencies) > 1:
			self.log.warning( 'Multiple currencies in'
				' itinerary fare breakdown, summing anyway: {}', ', '.join(sorted(currencies)) )
		currency = breakdown[0].currency if breakdown else self.conf.currency
		return t.public.Fare(sum(item.fare for item in breakdown), currency, tuple(breakdown))

	def apply(self, itin):
		return attr.evolve(itin, fare=self.itinerary_fare(itin))
