"""Postgres adaptor: table copy, logical decoding tail and writes by primary key."""