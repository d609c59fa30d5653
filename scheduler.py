# scheduler.py

MIN_SPEED = 0.1
MAX_SPEED = 10.0


class PlaybackScheduler:
    """
    Continuous play for a SimulationEngine.

    The caller drives it with ticks carrying the current time in ms (a real
    clock in the dashboard, a fake one in tests). A tick runs at most one
    engine step, and only once ``access_interval / speed`` ms have passed
    since the previous step. Stopping the ticks stops the simulation.
    """

    def __init__(self, engine, speed=1.0):
        self.engine = engine
        self.speed = 1.0
        self.set_speed(speed)
        self.is_running = False
        self.is_paused = False
        self.last_step_time = 0.0

    def set_speed(self, speed):
        self.speed = max(MIN_SPEED, min(MAX_SPEED, float(speed)))
        return self.speed

    @property
    def effective_interval(self):
        return self.engine.config.access_interval / self.speed

    @property
    def is_playing(self):
        return self.is_running and not self.is_paused

    def play(self, now):
        if self.is_playing:
            return
        self.is_running = True
        self.is_paused = False
        self.last_step_time = now

    def pause(self):
        self.is_paused = True

    def resume(self, now):
        self.play(now)

    def stop(self):
        self.is_running = False
        self.is_paused = False

    def tick(self, now):
        """Returns the step's stats if a step ran on this tick, else None."""
        if not self.is_playing:
            return None
        if now - self.last_step_time < self.effective_interval:
            return None
        self.last_step_time = now
        return self.engine.step()
