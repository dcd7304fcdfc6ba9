"""
Database Module for Finalisation Archives

This module provides database functionality for keeping a record of every
finalised exam block. It uses SQLite to persist the block's metadata and the
individual desk allocations, allowing users to look back at the seating of
earlier finalisations after the live data file has moved on.
"""

import sqlite3
from datetime import datetime
from models import SeatRecord

class AllocationDatabase:
    """
    Handles all database operations.
    """
    def __init__(self, db_file="finalisations.db"):
        self.db_file = db_file
        self.conn = sqlite3.connect(self.db_file)
        self.create_tables()

    def close(self):
        """Close the database connection if it is open"""
        if self.conn:
            self.conn.close()
            self.conn = None

    def create_tables(self):
        """Creates the necessary database tables if they do not exist"""
        cursor = self.conn.cursor()

        # Create table for storing finalisation metadata
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS finalisations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                version REAL NOT NULL,
                created_date TEXT NOT NULL,
                source_file TEXT,
                description TEXT
            )
        ''')

        # Create table for individual seats which are linked to finalisations
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS seats (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                finalisation_id INTEGER,
                venue_id TEXT NOT NULL,
                session_number INTEGER NOT NULL,
                day TEXT NOT NULL,
                start_time TEXT NOT NULL,
                desk_number INTEGER NOT NULL,
                lui TEXT NOT NULL,
                family_name TEXT NOT NULL,
                given_and_init TEXT NOT NULL,
                exam TEXT NOT NULL,
                FOREIGN KEY (finalisation_id) REFERENCES finalisations (id)
            )
        ''')

        self.conn.commit()

    def save_finalisation(self, block, description=""):
        """
        Saves a finalised exam block to the database which includes metadata and every seated desk.
        Returns the id of the new finalisation entry.
        """
        cursor = self.conn.cursor()

        # Insert finalisation metadata into the main table
        cursor.execute('''
            INSERT INTO finalisations (title, version, created_date, source_file, description)
            VALUES (?, ?, ?, ?, ?)
        ''', (block.title, block.version, datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
              block.filename, description))

        finalisation_id = cursor.lastrowid

        # Insert each seated desk linked to the finalisation
        for session in block.sessions:
            for desk in session.desks:
                if desk.student is None:
                    continue
                cursor.execute('''
                    INSERT INTO seats (
                        finalisation_id, venue_id, session_number, day, start_time,
                        desk_number, lui, family_name, given_and_init, exam
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ''', (finalisation_id, session.venue.venue_id, session.session_number,
                      str(session.day), session.start.strftime("%H:%M"), desk.number,
                      desk.student.lui, desk.student.family_name, desk.student.given_and_init,
                      desk.exam.short_title if desk.exam else ""))

        self.conn.commit()
        return finalisation_id

    def get_saved_finalisations(self):
        """
        Gets a list of all saved finalisations with their metadata.
        Returns tuples of (id, title, version, created_date, description), newest first.
        """
        cursor = self.conn.cursor()
        cursor.execute('SELECT id, title, version, created_date, description FROM finalisations '
                       'ORDER BY created_date DESC, id DESC')
        return cursor.fetchall()

    def load_finalisation(self, finalisation_id):
        """
        Loads all seats for a specific finalisation from the database.
        Reconstructs SeatRecord objects from the stored data.
        """
        cursor = self.conn.cursor()
        cursor.execute('SELECT venue_id, session_number, day, start_time, desk_number, lui, '
                       'family_name, given_and_init, exam FROM seats WHERE finalisation_id = ? '
                       'ORDER BY id', (finalisation_id,))
        return [SeatRecord(*row) for row in cursor.fetchall()]
