import sys
import os




def _run_goal_inference():
    sys.path.insert(0, os.path.abspath("./examples/goal_inference"))
    import crossing_agents

    crossing_agents.run()

    sys.path.pop(0)


def run_examples():
    _run_goal_inference()
