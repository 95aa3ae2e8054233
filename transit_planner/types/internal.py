### Route Planner internal types - search labels and open-set queue

import itertools as it, operator as op, functools as ft
import heapq

from .. import utils as u


@u.attr_struct(eq=False)
@ft.total_ordering
class PrioItem:
	prio = u.attr_init()
	value = u.attr_init()

	def __hash__(self): return hash(self.prio)
	def __eq__(self, item): return self.prio == item.prio
	def __lt__(self, item): return self.prio < item.prio
	def __iter__(self): return iter((self.prio, self.value))

	@classmethod
	def get_factory(cls, attr_args):
		'''Returns factory to create PrioItem by extracting
				specified prio attrs (or extractor func, if callable) from values.
			Intended to work with "*attrs" spec,
				where either single callable/string or individual attrs get passed.'''
		if isinstance(attr_args, str): attr_args = attr_args.split()
		if len(attr_args) == 1:
			if isinstance(attr_args[0], str): attr_args = attr_args[0].split()
			elif callable(attr_args[0]): attr_args = attr_args[0]
		if not callable(attr_args): attr_args = op.attrgetter(*attr_args)
		return lambda v: cls(attr_args(v), v)


class PrioQueue:
	def __init__(self, *prio_attrs):
		self.items, self.item_func = list(), PrioItem.get_factory(prio_attrs)
	def __len__(self): return len(self.items)
	def push(self, value): heapq.heappush(self.items, self.item_func(value))
	def pop(self): return heapq.heappop(self.items).value
	def peek(self): return self.items[0].value


@u.attr_struct(frozen=True)
class Edge:
	'''Single graph edge taken by the search.
		Transit edges ride trip_id from stopidx_a to stopidx_b, walk edges have trip_id=None.'''
	stop_from = u.attr_init()
	stop_to = u.attr_init()
	dts_dep = u.attr_init()
	dts_arr = u.attr_init()
	distance = u.attr_init(0)
	trip_id = u.attr_init(None)
	stopidx_a = u.attr_init(None)
	stopidx_b = u.attr_init(None)

	@property
	def is_walk(self): return self.trip_id is None


@u.attr_struct(frozen=True, repr=False)
class Label:
	'''Search state: stop reached at dts with transfers used so far.
		Path is kept as a chain of (prev label, edge) links.'''
	stop_id = u.attr_init()
	dts = u.attr_init()
	transfers = u.attr_init(0)
	trip_id = u.attr_init(None) # last trip ridden, kept over walk edges
	g = u.attr_init(0)
	f = u.attr_init(0)
	seq = u.attr_init(0) # insertion counter, makes queue order deterministic
	prev = u.attr_init(None)
	edge = u.attr_init(None)

	def path(self):
		edges, label = list(), self
		while label.edge:
			edges.append(label.edge)
			label = label.prev
		return list(reversed(edges))

	def __repr__(self):
		return '<Label {} [{}] n={} g={:.0f} f={:.0f}>'.format(
			self.stop_id, u.dts_format(self.dts), self.transfers, self.g, self.f )
