import math

import numpy as np
from cashkarp import rkck
from cashkarp.drivers import trajectory

# Integrate a normalised Gaussian of width 0.1 from -10 to 10: y(t) = erf(10 t)
width = 0.1
norm = 2.0 / math.sqrt(math.pi * width**2)


def gaussian(dydt, y, t):
    dydt[0] = math.exp(-(t / width) ** 2) * norm


integ = rkck(np.array([-1.0]), gaussian, -10.0, 1e-4,
             tol=1e-5, dt_max_mag=0.8, max_increase_factor=2.0)
traj = trajectory(integ, 10.0)

exact = np.array([math.erf(t / width) for t in traj.t])
print(f"Points: {len(traj)}")
print(f"y(10) = {traj.y[-1, 0]:.8f}  (exact 1)")
print(f"Max error vs erf: {np.max(np.abs(traj.y[:, 0] - exact)):.2e}")

np.savetxt("erf_trajectory.txt", np.column_stack([traj.t, traj.y[:, 0], exact, traj.dt]),
           header="t y erf dt")
