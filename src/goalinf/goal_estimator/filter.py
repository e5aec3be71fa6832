"""Implements the recursive goal inference filter.

This module contains the per agent track record and the Bayesian filter that
updates a belief over goal hypotheses from observed and predicted velocities.
"""
import warnings
from collections import deque
from copy import deepcopy

import numpy as np

from goalinf.errors import ConfigurationError, InputValidationError
from goalinf.utilities.belief import uniform_belief
from goalinf.utilities.densities import (
    bivariate_gaussian_pdf,
    check_velocities,
    check_velocity,
    kinematic_std,
)


class AgentTrack:
    """Record of the goal inference state for a single agent.

    Tracks are treated as values, the filter returns a new track from every
    update instead of modifying the one given to it.

    Attributes
    ----------
    agent_id : hashable
        Identifier of the agent.
    prior : numpy array
        Prior to use on the next update, one entry per goal hypothesis. This
        is None until the track is initialized and must not be read before.
        Entries floored by the filter are stored as is, so this may not sum
        to exactly 1.
    initialized : bool
        Flag indicating a valid prior has been computed. This covers all
        hypotheses of the agent together.
    created : int
        Timestep the agent was first seen.
    reset_pending : bool
        Flag indicating the next update must discard the prior.
    history : collections.deque
        Most recent beliefs output for this agent, oldest first.
    """

    def __init__(self, agent_id, created=0, history_len=10):
        self.agent_id = agent_id
        self.prior = None
        self.initialized = False
        self.created = created
        self.reset_pending = False
        self.history = deque(maxlen=history_len)

    def __repr__(self):
        fmt = "AgentTrack(agent_id={!r}, initialized={}, prior={})"
        return fmt.format(self.agent_id, self.initialized, self.prior)

    def copy(self):
        """Deep copy of the track."""
        return deepcopy(self)

    def save_track_state(self):
        """Saves the track variables as a dictionary."""
        return {
            "agent_id": self.agent_id,
            "prior": None if self.prior is None else self.prior.copy(),
            "initialized": self.initialized,
            "created": self.created,
            "reset_pending": self.reset_pending,
            "history": [b.copy() for b in self.history],
            "history_len": self.history.maxlen,
        }

    @classmethod
    def load_track_state(cls, track_state):
        """Creates a track from the output of :meth:`save_track_state`."""
        track = cls(
            track_state["agent_id"],
            created=track_state["created"],
            history_len=track_state["history_len"],
        )
        if track_state["prior"] is not None:
            track.prior = np.array(track_state["prior"], dtype=float)
        track.initialized = track_state["initialized"]
        track.reset_pending = track_state["reset_pending"]
        track.history.extend(np.array(b, dtype=float) for b in track_state["history"])
        return track


class GoalBeliefFilter:
    """Recursive Bayes filter over a discrete set of goal hypotheses.

    Notes
    -----
    The likelihood of each goal :math:`g` is a bivariate Gaussian centered on
    the velocity the agent is predicted to have if it were pursuing that
    goal, evaluated at the observed velocity. The standard deviation is fixed
    by the kinematic limits of the agents (see
    :func:`goalinf.utilities.densities.kinematic_std`) instead of being
    estimated. The posterior of one update is used as the prior of the next,
    with small posteriors floored so no hypothesis is ever driven to zero.

    Attributes
    ----------
    max_acc : float
        Maximum acceleration of the agents.
    dt : float
        Control period in seconds.
    corr : float
        Correlation between the x and y velocity noise.
    prior_floor : float
        Value stored as the next prior for hypotheses whose posterior is at or
        below `floor_threshold`.
    floor_threshold : float
        Posterior value at or below which the floor is applied.
    """

    def __init__(
        self,
        max_acc=1.2,
        dt=0.1,
        std=None,
        corr=0.0,
        prior_floor=0.005,
        floor_threshold=0.01,
    ):
        """Initialize an object.

        Parameters
        ----------
        max_acc : float, optional
            Maximum acceleration of the agents. The default is 1.2.
        dt : float, optional
            Control period in seconds. The default is 0.1.
        std : float, optional
            Standard deviation of the velocity noise, overrides the value
            derived from `max_acc` and `dt`. The default is None.
        corr : float, optional
            Correlation between the velocity components. The default is 0.
        prior_floor : float, optional
            Floor applied to stored priors. The default is 0.005.
        floor_threshold : float, optional
            Posterior at or below which the floor is applied. The default
            is 0.01.

        Raises
        ------
        ConfigurationError
            If any of the values are invalid.
        """
        self._std = kinematic_std(max_acc, dt)
        self.max_acc = max_acc
        self.dt = dt

        if std is not None:
            if not np.isfinite(std) or std <= 0:
                raise ConfigurationError("std must be positive, got {}".format(std))
            self._std = float(std)
        self._std_override = std

        if not -1 < corr < 1:
            raise ConfigurationError("corr must be in (-1, 1), got {}".format(corr))
        self.corr = corr

        if not 0 < prior_floor <= floor_threshold < 1:
            msg = "Must have 0 < prior_floor <= floor_threshold < 1, got {} and {}"
            raise ConfigurationError(msg.format(prior_floor, floor_threshold))
        self.prior_floor = prior_floor
        self.floor_threshold = floor_threshold

    @property
    def std(self):
        """Standard deviation of the velocity noise (read only)."""
        return self._std

    def save_filter_state(self):
        """Saves filter variables so they can be restored later."""
        filt_state = {}
        filt_state["max_acc"] = self.max_acc
        filt_state["dt"] = self.dt
        filt_state["std"] = self._std_override
        filt_state["corr"] = self.corr
        filt_state["prior_floor"] = self.prior_floor
        filt_state["floor_threshold"] = self.floor_threshold
        return filt_state

    def load_filter_state(self, filt_state):
        """Initializes filter using saved filter state.

        Attributes
        ----------
        filt_state : dict
            Dictionary generated by :meth:`save_filter_state`.
        """
        self.__init__(**filt_state)

    def likelihoods(self, observed, predicted):
        """Likelihood of the observed velocity under each goal hypothesis.

        Parameters
        ----------
        observed : array like
            Observed velocity (x, y).
        predicted : array like
            Predicted velocity for each goal, reshapes to N x 2.

        Returns
        -------
        numpy array
            Likelihood of each goal hypothesis, shape (N, ).

        Raises
        ------
        ConfigurationError
            If there are no goal hypotheses.
        InputValidationError
            If the velocities are malformed or not finite.
        """
        observed = check_velocity(observed, name="observed velocity")
        predicted = check_velocities(predicted, name="predicted velocities")
        if predicted.shape[0] == 0:
            raise ConfigurationError("At least 1 goal hypothesis is required")

        return bivariate_gaussian_pdf(observed, predicted, self._std, corr=self.corr)

    def update(self, observed, predicted, prior=None, reset=False):
        """Updates the belief over the goals with a new observation.

        Parameters
        ----------
        observed : array like
            Observed velocity (x, y) of the agent.
        predicted : array like
            Predicted velocity for each goal, reshapes to N x 2.
        prior : array like, optional
            Prior from the previous update. The default is None which implies
            no prior exists yet and a uniform prior is used.
        reset : bool, optional
            Flag for discarding the prior. When set the output is the uniform
            belief regardless of the observation. The default is False.

        Returns
        -------
        belief : numpy array
            Normalized posterior over the goals.
        next_prior : numpy array
            Prior to use on the next update, with the floor applied. This is
            the given prior if every likelihood underflowed to zero.

        Raises
        ------
        ConfigurationError
            If there are no goal hypotheses.
        InputValidationError
            If the velocities or prior are malformed.

        Warns
        -----
        RuntimeWarning
            If every likelihood is zero and the uniform belief is output.
        """
        likelihoods = self.likelihoods(observed, predicted)
        num_goals = likelihoods.size
        uniform = uniform_belief(num_goals)

        if reset:
            return uniform, uniform.copy()

        if prior is not None:
            prior = np.asarray(prior, dtype=float).ravel()
            if prior.size != num_goals:
                msg = "Prior has {:d} entries for {:d} goal hypotheses"
                raise InputValidationError(msg.format(prior.size, num_goals))
            if not np.all(np.isfinite(prior)) or np.any(prior < 0):
                raise InputValidationError("Prior must be finite and non-negative")

        used_prior = uniform if prior is None else prior
        posterior = likelihoods * used_prior
        posterior_norm = np.sum(posterior)

        if posterior_norm == 0:
            warnings.warn(
                "All goal likelihoods are zero, using uniform belief", RuntimeWarning
            )
            return uniform, None if prior is None else prior.copy()

        belief = posterior / posterior_norm
        next_prior = np.where(belief > self.floor_threshold, belief, self.prior_floor)
        return belief, next_prior

    def update_track(self, track, observed, predicted, reset=False):
        """Updates the belief of a single agent's track.

        The track is not modified, a new track holding the next prior is
        returned.

        Parameters
        ----------
        track : :class:`.AgentTrack`
            Current track of the agent.
        observed : array like
            Observed velocity (x, y) of the agent.
        predicted : array like
            Predicted velocity for each goal, reshapes to N x 2.
        reset : bool, optional
            Flag for discarding the prior, combined with the pending reset
            flag of the track. The default is False.

        Returns
        -------
        belief : numpy array
            Normalized posterior over the goals.
        new_track : :class:`.AgentTrack`
            Track to use for the next update.
        """
        prior = track.prior if track.initialized else None
        belief, next_prior = self.update(
            observed, predicted, prior=prior, reset=reset or track.reset_pending
        )

        new_track = track.copy()
        new_track.prior = next_prior
        new_track.initialized = next_prior is not None
        new_track.reset_pending = False
        new_track.history.append(belief.copy())
        return belief, new_track
