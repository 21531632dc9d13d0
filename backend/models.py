# Import moved models
from domain.models.band import Band, BandMember
from domain.models.song import Song
from domain.models.setlist import Setlist, SetlistSong, SetlistSongView, SongSummary
