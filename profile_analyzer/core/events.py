STATE = "state"
RESULT = "result"
ERROR = "error"
DONE = "done"
