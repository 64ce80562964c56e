import math

import numpy as np
from cashkarp import rkck

# dy/dt = cos(1/t) / t on [0.01, 1]: oscillates rapidly near the left end
def deriv(dydt, y, t):
    dydt[0] = math.cos(1.0 / t) / t


integ = rkck(np.array([0.0]), deriv, 0.01, 1e-6, tol=1e-10)
integ.steps(math.inf, 1.0)

print(f"t = {integ.t}, y = {integ.y[0]:.12f}")
print(f"Accepted steps: {integ.nok}, rejected: {integ.nbad}")
print(f"Last step: {integ.hdid:.3e}, next proposed: {integ.dt:.3e}")
