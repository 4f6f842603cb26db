import os
from decimal import Decimal

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///arena.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Browser origins allowed for both HTTP and Socket.IO
    ALLOWED_ORIGINS = [o.strip() for o in os.environ.get(
        'ALLOWED_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
    ).split(',') if o.strip()]
    # Balance every new identity starts with
    STARTING_BALANCE = Decimal(os.environ.get('STARTING_BALANCE', '1337.50'))
    # House cut taken from the loser's stake; 0.10 pays the winner stake * 1.9
    HOUSE_FEE_RATE = Decimal(os.environ.get('HOUSE_FEE_RATE', '0.10'))
    # Disconnecting mid-game hands the match to the opponent. 0 disables.
    FORFEIT_ON_DISCONNECT = os.environ.get('FORFEIT_ON_DISCONNECT', '1') not in ('0', 'false', 'False', '')
