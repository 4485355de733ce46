from quickshow.models.user import User
from quickshow.models.movie import Movie
from quickshow.models.show import Show
from quickshow.models.booking import Booking
from quickshow.models.scheduled_task import ScheduledTask

__all__ = ["User", "Movie", "Show", "Booking", "ScheduledTask"]
