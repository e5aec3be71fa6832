def straight_line_velocities(positions, goals, max_speed):
    """Toy stand in for the velocity simulator.

    Each agent is assumed to drive straight at its goal at the maximum speed,
    slowing down once within one step of it.
    """
    import numpy as np

    pred = []
    for pos in positions:
        for goal in goals:
            diff = goal - pos
            dist = np.linalg.norm(diff)
            if dist < 1e-9:
                pred.append(np.zeros(2))
            else:
                pred.append(diff / dist * min(max_speed, dist))
    return np.array(pred)


def crossing_agents():
    import numpy as np
    import matplotlib.pyplot as plt

    from goalinf.goal_estimator.filter import GoalBeliefFilter
    from goalinf.goal_estimator.scheduler import InferenceScheduler, ObservationSnapshot
    from goalinf.utilities.belief import most_likely_goal

    rng = np.random.default_rng(seed=29)

    dt = 0.1
    max_acc = 1.2
    max_speed = 0.5
    num_steps = 60

    # three goals along the top of the room
    goals = np.array([[-1.5, 2.0], [0.0, 2.5], [1.5, 2.0]])
    goal_lbls = ["Left", "Center", "Right"]

    # agent ids and the goal each is actually heading to
    agent_ids = ["robot_1", "robot_2"]
    true_goals = {"robot_1": 2, "robot_2": 0}
    positions = {"robot_1": np.array([-1.0, -0.25]), "robot_2": np.array([1.0, -0.25])}

    belief_filter = GoalBeliefFilter(max_acc=max_acc, dt=dt)
    scheduler = InferenceScheduler(belief_filter, history_len=num_steps)

    for kk in range(num_steps):
        pos_list = [positions[a] for a in agent_ids]
        pred = straight_line_velocities(pos_list, goals, max_speed)

        observed = {}
        for ii, agent_id in enumerate(agent_ids):
            true_vel = pred[ii * goals.shape[0] + true_goals[agent_id]]
            observed[agent_id] = true_vel + rng.normal(scale=0.02, size=2)

        snapshot = ObservationSnapshot(
            agent_ids, observed, pred, goals.shape[0], timestep=kk
        )
        beliefs = scheduler.tick_snapshot(snapshot)

        for agent_id in agent_ids:
            positions[agent_id] = positions[agent_id] + observed[agent_id] * dt

    for agent_id, belief in beliefs.items():
        ind, prob = most_likely_goal(belief)
        print(
            "\t{:s} heading to {:s} ({:.3f}), truth {:s}".format(
                agent_id, goal_lbls[ind], prob, goal_lbls[true_goals[agent_id]]
            )
        )

    figs = {}
    for agent_id in agent_ids:
        fig = plt.figure()
        fig.add_subplot(1, 1, 1)
        figs[agent_id] = scheduler.plot_belief_history(
            agent_id, goal_lbls=goal_lbls, time_units="step", f_hndl=fig
        )

    return figs


def run():
    import os

    print("Generating goal inference examples")

    fout = os.path.join(os.path.dirname(__file__), "crossing_agents_{:s}.png")
    figs = crossing_agents()
    for agent_id, fig in figs.items():
        fig.savefig(fout.format(agent_id))


if __name__ == "__main__":
    import matplotlib.pyplot as plt

    plt.close("all")

    run()

    plt.show()
