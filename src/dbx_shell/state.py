class AppState:
    """Process-wide CLI flags, set once by the top-level command callback."""

    def __init__(self):
        self.verbose_mode: bool = False


APP_STATE = AppState()
