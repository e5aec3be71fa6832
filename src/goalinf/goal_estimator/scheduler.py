"""Runs goal inference for every tracked agent once per control cycle.

This module contains the scheduler that owns the per agent tracks and a
snapshot type for handing a consistent set of inputs to it.
"""
import threading
import warnings
from copy import deepcopy

import numpy as np
import matplotlib.pyplot as plt

from goalinf.errors import ConfigurationError, InputValidationError
from goalinf.goal_estimator.filter import AgentTrack, GoalBeliefFilter
from goalinf.utilities.densities import check_velocities, check_velocity


class ObservationSnapshot:
    """Inputs for a single inference tick.

    The inputs are copied on construction so a producer can keep writing to
    its own buffers while the snapshot is waiting to be processed.

    Attributes
    ----------
    tracked_ids : tuple
        Ordered identifiers of the agents being tracked.
    observed : dict
        Observed velocity of each agent, keyed by identifier.
    predicted : numpy array
        Predicted velocities, agent-major, one row per (agent, goal) pair.
    hypothesis_count : int
        Number of goal hypotheses.
    timestep : int
        Timestep of the snapshot, may be None.
    """

    __slots__ = ("tracked_ids", "observed", "predicted", "hypothesis_count", "timestep")

    def __init__(self, tracked_ids, observed, predicted, hypothesis_count, timestep=None):
        if isinstance(tracked_ids, (set, frozenset)):
            raise InputValidationError("Tracked agent identifiers must be ordered")
        self.tracked_ids = tuple(tracked_ids)
        # values are validated per agent when the tick runs
        self.observed = {k: deepcopy(v) for k, v in observed.items()}
        self.predicted = deepcopy(predicted)
        self.hypothesis_count = int(hypothesis_count)
        self.timestep = timestep


class InferenceScheduler:
    """Manages goal inference filters for a changing set of agents.

    Each call to :meth:`tick` runs one filter update per tracked agent. Tracks
    are created when an agent first appears and removed when it is no longer
    reported. A change in the number of goal hypotheses invalidates every
    prior, so all tracks are reset on the next update.

    Attributes
    ----------
    filter : :class:`goalinf.goal_estimator.filter.GoalBeliefFilter`
        Filter used to update every agent.
    reset_priors : bool
        Flag forcing every update to discard the priors.
    history_len : int
        Number of past beliefs kept per agent.
    """

    def __init__(self, belief_filter=None, reset_priors=False, history_len=10):
        """Initialize an object.

        Parameters
        ----------
        belief_filter : :class:`goalinf.goal_estimator.filter.GoalBeliefFilter`, optional
            Filter used to update every agent. The default is None which
            implies a filter with default parameters.
        reset_priors : bool, optional
            Flag forcing every update to discard the priors. The default is
            False.
        history_len : int, optional
            Number of past beliefs kept per agent. The default is 10.
        """
        if belief_filter is None:
            belief_filter = GoalBeliefFilter()
        if history_len < 1:
            msg = "history_len must be at least 1, got {}".format(history_len)
            raise ConfigurationError(msg)
        self.filter = belief_filter
        self.reset_priors = reset_priors
        self.history_len = history_len

        self._tracks = {}
        self._order = []
        self._hypothesis_count = None
        self._timestep = -1
        self._last_errors = {}
        self._lock = threading.Lock()

    @property
    def tracked_ids(self):
        """Identifiers of the currently tracked agents (read only)."""
        with self._lock:
            return list(self._order)

    @property
    def hypothesis_count(self):
        """Number of goal hypotheses of the last tick (read only)."""
        return self._hypothesis_count

    @property
    def timestep(self):
        """Timestep of the last tick (read only)."""
        return self._timestep

    @property
    def last_errors(self):
        """Errors of the agents skipped on the last tick, keyed by identifier."""
        with self._lock:
            return dict(self._last_errors)

    def get_track(self, agent_id):
        """Copy of the track of an agent.

        Raises
        ------
        KeyError
            If the agent is not tracked.
        """
        with self._lock:
            return self._tracks[agent_id].copy()

    def belief_history(self, agent_id):
        """Recent beliefs of an agent as an array, one row per tick."""
        with self._lock:
            hist = list(self._tracks[agent_id].history)
        if len(hist) == 0:
            return np.zeros((0, self._hypothesis_count or 0))
        return np.vstack(hist)

    def request_reset(self):
        """Discards the priors of every track on their next update."""
        with self._lock:
            for track in self._tracks.values():
                track.reset_pending = True

    def tick_snapshot(self, snapshot, reset=False):
        """Runs a tick from an :class:`.ObservationSnapshot`."""
        return self.tick(
            snapshot.tracked_ids,
            snapshot.observed,
            snapshot.predicted,
            snapshot.hypothesis_count,
            timestep=snapshot.timestep,
            reset=reset,
        )

    def tick(
        self,
        tracked_ids,
        observed,
        predicted,
        hypothesis_count,
        timestep=None,
        reset=False,
    ):
        """Runs one inference update for every tracked agent.

        Parameters
        ----------
        tracked_ids : list
            Ordered identifiers of the agents to track. The position of an
            agent in this list selects its block of predicted velocities.
        observed : dict
            Observed velocity (x, y) of each agent, keyed by identifier.
        predicted : array like
            Predicted velocities, agent-major, reshapes to
            (num_agents * hypothesis_count) x 2.
        hypothesis_count : int
            Number of goal hypotheses.
        timestep : int, optional
            Timestep of the tick. The default is None which implies one more
            than the previous tick.
        reset : bool, optional
            Flag for discarding the priors of every agent on this tick. The
            default is False.

        Returns
        -------
        dict
            Belief over the goals for each agent updated on this tick. Agents
            with invalid inputs are left out.

        Raises
        ------
        ConfigurationError
            If `hypothesis_count` is less than 1.
        InputValidationError
            If `tracked_ids` is a set or has duplicates, or `predicted` is
            not numeric. An agent's position in `tracked_ids` selects its
            predicted velocities, so the identifiers must be ordered.

        Warns
        -----
        RuntimeWarning
            For every agent skipped because of invalid inputs, and for every
            agent whose likelihoods all underflowed. These are emitted after
            all agents have been updated.
        """
        if hypothesis_count < 1:
            msg = "At least 1 goal hypothesis is required, got {}"
            raise ConfigurationError(msg.format(hypothesis_count))
        if isinstance(tracked_ids, (set, frozenset)):
            raise InputValidationError("Tracked agent identifiers must be ordered")
        tracked_ids = list(tracked_ids)
        if len(set(tracked_ids)) != len(tracked_ids):
            raise InputValidationError("Tracked agent identifiers must be unique")
        observed = dict(observed)
        try:
            predicted = np.array(predicted, dtype=float).ravel()
        except (TypeError, ValueError) as e:
            msg = "predicted velocities are not numeric: {}".format(e)
            raise InputValidationError(msg) from e

        diagnostics = []
        with self._lock:
            if timestep is None:
                timestep = self._timestep + 1
            self._timestep = timestep

            hyp_changed = (
                self._hypothesis_count is not None
                and self._hypothesis_count != hypothesis_count
            )
            self._hypothesis_count = hypothesis_count

            self._tracks = {
                agent_id: track
                for agent_id, track in self._tracks.items()
                if agent_id in tracked_ids
            }
            for agent_id in tracked_ids:
                if agent_id not in self._tracks:
                    self._tracks[agent_id] = AgentTrack(
                        agent_id, created=timestep, history_len=self.history_len
                    )
                elif hyp_changed:
                    self._tracks[agent_id].reset_pending = True
            self._order = tracked_ids

            beliefs = {}
            self._last_errors = {}
            for ind, agent_id in enumerate(tracked_ids):
                err = None
                with warnings.catch_warnings(record=True) as caught:
                    warnings.simplefilter("always")
                    try:
                        beliefs[agent_id] = self._update_agent(
                            agent_id, ind, observed, predicted, hypothesis_count, reset
                        )
                    except InputValidationError as e:
                        err = e
                diagnostics.extend((w.message, w.category) for w in caught)
                if err is not None:
                    self._last_errors[agent_id] = err
                    msg = "Skipping agent {!r} at timestep {}: {}"
                    msg = msg.format(agent_id, timestep, err)
                    diagnostics.append((msg, RuntimeWarning))

        # only emitted after every track has been stored
        for message, category in diagnostics:
            warnings.warn(message, category, stacklevel=2)

        return beliefs

    def _update_agent(self, agent_id, ind, observed, predicted, num_goals, reset):
        if agent_id not in observed:
            raise InputValidationError("No observed velocity")
        obs = check_velocity(observed[agent_id], name="observed velocity")

        # agent blocks are cut from the flat values
        size = 2 * num_goals
        agent_pred = check_velocities(
            predicted[ind * size:(ind + 1) * size],
            count=num_goals,
            name="predicted velocities",
            finite=False,
        )

        belief, new_track = self.filter.update_track(
            self._tracks[agent_id],
            obs,
            agent_pred,
            reset=reset or self.reset_priors,
        )
        self._tracks[agent_id] = new_track
        return belief.copy()

    def save_filter_state(self):
        """Saves scheduler and track variables so they can be restored later."""
        with self._lock:
            filt_state = {}
            filt_state["filter"] = (type(self.filter), self.filter.save_filter_state())
            filt_state["reset_priors"] = self.reset_priors
            filt_state["history_len"] = self.history_len
            filt_state["_order"] = list(self._order)
            filt_state["_hypothesis_count"] = self._hypothesis_count
            filt_state["_timestep"] = self._timestep
            filt_state["_tracks"] = [
                self._tracks[agent_id].save_track_state() for agent_id in self._order
            ]
            return filt_state

    def load_filter_state(self, filt_state):
        """Initializes scheduler using saved filter state.

        Attributes
        ----------
        filt_state : dict
            Dictionary generated by :meth:`save_filter_state`.
        """
        cls_type, saved = filt_state["filter"]
        belief_filter = cls_type()
        belief_filter.load_filter_state(saved)

        with self._lock:
            self.filter = belief_filter
            self.reset_priors = filt_state["reset_priors"]
            self.history_len = filt_state["history_len"]
            self._order = list(filt_state["_order"])
            self._hypothesis_count = filt_state["_hypothesis_count"]
            self._timestep = filt_state["_timestep"]
            self._tracks = {}
            for track_state in filt_state["_tracks"]:
                track = AgentTrack.load_track_state(track_state)
                self._tracks[track.agent_id] = track
            self._last_errors = {}

    def plot_belief_history(
        self, agent_id, ttl=None, time_units="index", goal_lbls=None, f_hndl=None
    ):
        """Plots the recent belief of each goal for an agent.

        Parameters
        ----------
        agent_id : hashable
            Identifier of the agent to plot.
        ttl : string, optional
            Title of the plot. The default is None which implies a title with
            the agent identifier.
        time_units : string, optional
            Text representing the units of time in the plot. The default is
            'index'.
        goal_lbls : list, optional
            Legend label for each goal. The default is None which implies the
            goal indices are used.
        f_hndl : matplotlib figure, optional
            Figure to plot on, must have at least 1 axes. The default is None
            which implies a new figure is created.

        Returns
        -------
        fig : matplotlib figure
            Figure the data was plotted on.
        """
        hist = self.belief_history(agent_id)
        if hist.shape[0] == 0:
            warnings.warn("No beliefs to plot for agent {!r}".format(agent_id))

        fig = f_hndl
        if fig is None:
            fig = plt.figure()
            fig.add_subplot(1, 1, 1)
        if ttl is None:
            ttl = "Goal Belief of Agent {}".format(agent_id)
        if goal_lbls is None:
            goal_lbls = ["Goal {:d}".format(ii) for ii in range(hist.shape[1])]

        time = np.arange(hist.shape[0])
        ax = fig.axes[0]
        ax.grid(True)
        ax.ticklabel_format(useOffset=False)
        for goal, lbl in enumerate(goal_lbls):
            ax.plot(time, hist[:, goal], label=lbl)
        ax.set_ylim((-0.05, 1.05))
        ax.set_title(ttl)
        ax.set_xlabel("Time ({})".format(time_units))
        ax.set_ylabel("Belief")
        if len(goal_lbls) > 0:
            ax.legend()
        fig.tight_layout()

        return fig
